import base64
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s

from config import ChartMuseumArgs

# owners a storage provider may assign to the resources it declares
ROOT = "component"
NAMESPACE = "namespace"


class UnsupportedProviderError(ValueError):
    def __init__(self, provider_id: str, supported: Tuple[str, ...]):
        super().__init__(f"Unsupported storage provider '{provider_id}', expected one of {supported}")
        self.provider_id = provider_id
        self.supported = supported


@dataclass(frozen=True)
class Credentials:
    secret: k8s.core.v1.Secret
    secret_name: pulumi.Input[str]
    # (environment variable, secret data key) in emission order
    variables: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class DeclaredResource:
    key: str
    resource: pulumi.Resource
    owner: str
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageResult:
    provider_id: str
    region: str
    bucket: pulumi.Resource
    bucket_name: pulumi.Input[str]
    credentials: Optional[Credentials] = None
    # in declaration order
    resources: Tuple[DeclaredResource, ...] = ()


@dataclass(frozen=True)
class StorageScope:
    parent: Optional[pulumi.Resource]
    namespace: k8s.core.v1.Namespace
    labels: Dict[str, str]


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


# region Providers
class StorageProvider(ABC):
    provider_id: str

    @abstractmethod
    def provision(self, name: str, args: ChartMuseumArgs, scope: StorageScope) -> StorageResult:
        pass


def bucket_policy_document(bucket_arn: str) -> Dict[str, Any]:
    """IAM policy limited to listing the bucket and reading/writing its objects."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["s3:ListBucket"],
                "Resource": [bucket_arn],
            },
            {
                "Effect": "Allow",
                "Action": ["s3:GetObject", "s3:PutObject", "s3:DeleteObject"],
                "Resource": [f"{bucket_arn}/*"],
            },
        ],
    }


class AmazonStorage(StorageProvider):
    provider_id = "amazon"

    ACCESS_KEY_ID = "access-key-id"
    SECRET_ACCESS_KEY = "secret-access-key"

    def provision(self, name: str, args: ChartMuseumArgs, scope: StorageScope) -> StorageResult:
        region = args.storage.region
        aws_provider = aws.Provider(f"{name}-aws", region=region, opts=pulumi.ResourceOptions(parent=scope.parent))
        opts = pulumi.ResourceOptions(parent=scope.parent, provider=aws_provider)

        bucket = aws.s3.Bucket(f"{name}-bucket", tags=scope.labels, opts=opts)
        pulumi.log.info(f"Declared bucket: {name}-bucket ({region})")

        user = aws.iam.User(f"{name}-user", tags=scope.labels, opts=opts)
        policy = aws.iam.UserPolicy(
            f"{name}-policy",
            user=user.name,
            policy=bucket.arn.apply(lambda arn: json.dumps(bucket_policy_document(arn))),
            opts=opts,
        )
        access_key = aws.iam.AccessKey(
            f"{name}-access-key",
            user=user.name,
            opts=pulumi.ResourceOptions.merge(opts, pulumi.ResourceOptions(depends_on=[policy])),
        )
        pulumi.log.info(f"Declared IAM user and access key for bucket: {name}-bucket")

        secret = k8s.core.v1.Secret(
            f"{name}-credentials",
            metadata=k8s.meta.v1.ObjectMetaArgs(
                namespace=scope.namespace.metadata.name,
                labels=scope.labels,
            ),
            type="Opaque",
            data={
                self.ACCESS_KEY_ID: access_key.id.apply(_encode),
                self.SECRET_ACCESS_KEY: access_key.secret.apply(_encode),
            },
            opts=pulumi.ResourceOptions(parent=scope.namespace),
        )

        return StorageResult(
            provider_id=self.provider_id,
            region=region,
            bucket=bucket,
            bucket_name=bucket.bucket,
            credentials=Credentials(
                secret=secret,
                secret_name=secret.metadata.name,
                variables=(
                    ("AWS_ACCESS_KEY_ID", self.ACCESS_KEY_ID),
                    ("AWS_SECRET_ACCESS_KEY", self.SECRET_ACCESS_KEY),
                ),
            ),
            resources=(
                DeclaredResource("aws-provider", aws_provider, ROOT),
                DeclaredResource("bucket", bucket, ROOT),
                DeclaredResource("user", user, ROOT),
                DeclaredResource("policy", policy, ROOT),
                DeclaredResource("access-key", access_key, ROOT, depends_on=("policy",)),
                DeclaredResource("credentials", secret, NAMESPACE),
            ),
        )
# endregion


PROVIDERS: Dict[str, Type[StorageProvider]] = {
    AmazonStorage.provider_id: AmazonStorage,
}


def get_storage_provider(provider_id: str) -> StorageProvider:
    try:
        provider_class = PROVIDERS[provider_id]
    except KeyError:
        raise UnsupportedProviderError(provider_id, tuple(sorted(PROVIDERS))) from None
    pulumi.log.debug(f"Using storage provider '{provider_id}' ({provider_class.__name__})")
    return provider_class()
