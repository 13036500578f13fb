"""Build-time version stamp.

The release pipeline rewrites these values before packaging the binary.
Empty strings mean a development build.
"""

SEMVER = ""
COMMIT = ""
REPOSITORY = ""
