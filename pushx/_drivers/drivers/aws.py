"""AWS drivers: ``aws-s3`` uploads the payload as an object, ``aws-sqs``
sends it as a message.

Both use boto3 with the default credential chain. When a role ARN is
given, credentials are obtained through STS ``AssumeRole`` first. The
region falls back to ``AWS_REGION`` and then ``us-east-1``.
"""

import io
import os
import uuid
from typing import Any, BinaryIO, Dict, Tuple
from urllib.parse import urlencode

from pushx.exceptions import BackendConnectionError, DeliveryError
from pushx.logging_config import logger
from pushx.template import has_tokens, render

from ..protocol import BaseDriver, Setting, import_client, parse_pairs

DEFAULT_REGION = "us-east-1"

AWS_SETTINGS = (
    Setting("region", "aws-region", "AWS_REGION", "AWS region"),
    Setting("role_arn", "aws-role-arn", "AWS_ROLE_ARN", "AWS role ARN to assume"),
)


class AWSDriver(BaseDriver):
    """Session and client setup shared by the AWS drivers."""

    SERVICE = ""
    REQUIRED: Tuple[str, ...] = ()

    def __init__(self) -> None:
        super().__init__()
        self._client: Any = None
        self._boto_errors: Any = None

    def _session(self, boto3: Any) -> Any:
        session = boto3.session.Session(region_name=self.region)
        if not self.role_arn:
            return session

        session_name = f"pushx-{uuid.uuid4()}"
        logger.debug(f"[{self.name}] Assuming role {self.role_arn} as {session_name}")
        credentials = session.client("sts").assume_role(RoleArn=self.role_arn, RoleSessionName=session_name)[
            "Credentials"
        ]
        return boto3.session.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

    def init(self) -> None:
        super().init()
        self.require(*self.REQUIRED)
        self.region = self.region or os.getenv("AWS_REGION") or DEFAULT_REGION
        boto3 = import_client("boto3", "aws", self.name)
        self._boto_errors = import_client("botocore.exceptions", "aws", self.name)
        try:
            self._client = self._session(boto3).client(self.SERVICE)
        except (self._boto_errors.BotoCoreError, self._boto_errors.ClientError) as e:
            raise BackendConnectionError(f"{self.name}: failed to create {self.SERVICE} client: {e}")
        logger.debug(f"[{self.name}] {self.SERVICE} client ready in {self.region}")

    def _aws_errors(self) -> Tuple[type, ...]:
        return (self._boto_errors.BotoCoreError, self._boto_errors.ClientError)


class S3Driver(AWSDriver):
    name = "aws-s3"
    description = "Upload the payload as an S3 object"
    SERVICE = "s3"
    REQUIRED = ("bucket", "key")

    SETTINGS = AWS_SETTINGS + (
        Setting("bucket", "aws-s3-bucket", "AWS_S3_BUCKET", "AWS S3 bucket"),
        Setting("key", "aws-s3-key", "AWS_S3_KEY", "AWS S3 key; may contain {{selector}} tokens"),
        Setting("acl", "aws-s3-acl", "AWS_S3_ACL", "AWS S3 canned ACL"),
        Setting(
            "tags",
            "aws-s3-tags",
            "AWS_S3_TAGS",
            "AWS S3 tags, comma separated key=value pairs",
            parser=parse_pairs("="),
        ),
    )

    def _extra_args(self) -> Dict[str, str]:
        extra_args: Dict[str, str] = {}
        if self.acl:
            extra_args["ACL"] = self.acl
        if self.tags:
            extra_args["Tagging"] = urlencode(self.tags)
        return extra_args

    def push(self, stream: BinaryIO) -> None:
        if self._client is None:
            raise DeliveryError(f"{self.name}: driver not initialized")

        key = self.key
        if has_tokens(key):
            payload = stream.read()
            key = render(payload, key)
            stream = io.BytesIO(payload)
        if not key:
            raise DeliveryError(f"{self.name}: resolved key is empty")

        try:
            self._client.upload_fileobj(stream, self.bucket, key, ExtraArgs=self._extra_args() or None)
        except self._aws_errors() as e:
            raise DeliveryError(f"{self.name}: failed to upload s3://{self.bucket}/{key}: {e}")
        logger.info(f"Uploaded payload to s3://{self.bucket}/{key}")


class SQSDriver(AWSDriver):
    name = "aws-sqs"
    description = "Send the payload as an SQS message"
    SERVICE = "sqs"
    REQUIRED = ("queue_url",)

    SETTINGS = AWS_SETTINGS + (Setting("queue_url", "aws-sqs-queue-url", "AWS_SQS_QUEUE_URL", "AWS SQS queue URL"),)

    def push(self, stream: BinaryIO) -> None:
        if self._client is None:
            raise DeliveryError(f"{self.name}: driver not initialized")

        body = stream.read().decode("utf-8", errors="replace").strip()
        try:
            response = self._client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except self._aws_errors() as e:
            raise DeliveryError(f"{self.name}: failed to send message to {self.queue_url}: {e}")
        logger.info(f"Sent message {response.get('MessageId')} to {self.queue_url}")
