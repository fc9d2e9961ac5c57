RECORDS_KEY = "Records"
S3_KEY = "s3"
BUCKET_KEY = "bucket"
NAME_KEY = "name"
OBJECT_KEY = "object"
KEY_KEY = "key"
