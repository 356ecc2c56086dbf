"""
KMS S3 Cache Global Constants

Centralized location for package-wide constants.
"""

# Package identity, surfaced on every cache instance and in telemetry events
APP_NAME = "kms-s3-cache"
APP_VERSION = "0.1.0"

# Encryption context attribute the lookup key is bound under on every decrypt
KEY_ID_CONTEXT_ATTRIBUTE = "keyId"

# S3 error codes that mean "no usable object for this key"
S3_ACCESS_DENIED = "AccessDenied"
S3_NO_SUCH_KEY = "NoSuchKey"
S3_NOT_FOUND_CODES = (S3_ACCESS_DENIED, S3_NO_SUCH_KEY)

# Trace span names for the two remote calls
S3_GET_OBJECT_SPAN = "AWS.S3.getObject"
KMS_DECRYPT_SPAN = "AWS.KMS.decrypt"
