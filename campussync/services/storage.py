import os
import time
from werkzeug.utils import secure_filename
from flask import current_app
import boto3
from botocore.client import Config


def _ensure_local_dir():
    d = current_app.config['LOCAL_STORAGE_DIR']
    os.makedirs(d, exist_ok=True)
    return d


def _s3_client():
    # endpoint_url may be empty for AWS-managed S3
    s3_kwargs = {}
    endpoint = current_app.config.get('S3_ENDPOINT')
    if endpoint:
        s3_kwargs['endpoint_url'] = endpoint
    region = current_app.config.get('S3_REGION')
    if region:
        s3_kwargs['region_name'] = region
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config.get('S3_ACCESS_KEY'),
        aws_secret_access_key=current_app.config.get('S3_SECRET_KEY'),
        config=Config(signature_version='s3v4', s3={'addressing_style': 'virtual'}),
        **s3_kwargs,
    )


def _save_local(file_storage, key):
    d = _ensure_local_dir()
    path = os.path.join(d, key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    file_storage.save(path)
    return f"file://{os.path.abspath(path)}"


def build_key(owner_id, filename):
    """<owner>/<millis>_<sanitized name>, so repeated uploads never collide."""
    name = secure_filename(filename or '') or 'upload'
    return f"{owner_id}/{int(time.time() * 1000)}_{name}"


def save_file(file_storage, key):
    backend = current_app.config.get('STORAGE_BACKEND', 'local')
    if backend != 's3':
        return _save_local(file_storage, key)

    bucket = current_app.config.get('S3_BUCKET')
    stream = getattr(file_storage, 'stream', file_storage)
    try:
        _s3_client().upload_fileobj(stream, bucket, key)
        return f"s3://{bucket}/{key}"
    except Exception:
        current_app.logger.exception('S3 upload failed, falling back to local storage')
        if hasattr(stream, "seek"):
            stream.seek(0)
        return _save_local(file_storage, key)


def delete_file(url: str) -> bool:
    """Best-effort removal; returns False instead of raising."""
    if not url:
        return False
    try:
        if url.startswith('s3://'):
            bucket, key = url.replace('s3://', '').split('/', 1)
            _s3_client().delete_object(Bucket=bucket, Key=key)
            return True
        if url.startswith('file://'):
            path = url.replace('file://', '')
            if os.path.exists(path):
                os.remove(path)
                return True
        return False
    except Exception:
        current_app.logger.exception('failed to delete stored file %s', url)
        return False
