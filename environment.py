from dataclasses import dataclass
from typing import Optional, Tuple

import pulumi
import pulumi_kubernetes as k8s

from config import ChartMuseumArgs
from storage import StorageResult


@dataclass(frozen=True)
class SecretRef:
    name: pulumi.Input[str]
    key: str


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: Optional[pulumi.Input[str]] = None
    secret_ref: Optional[SecretRef] = None

    def __post_init__(self):
        if (self.value is None) == (self.secret_ref is None):
            raise ValueError(f"Environment variable '{self.name}' needs exactly one of value or secret_ref")

    def to_args(self) -> k8s.core.v1.EnvVarArgs:
        if self.secret_ref is None:
            return k8s.core.v1.EnvVarArgs(name=self.name, value=self.value)
        return k8s.core.v1.EnvVarArgs(
            name=self.name,
            value_from=k8s.core.v1.EnvVarSourceArgs(
                secret_key_ref=k8s.core.v1.SecretKeySelectorArgs(
                    name=self.secret_ref.name,
                    key=self.secret_ref.key,
                ),
            ),
        )


def env_var_name(provider_id: str, suffix: str) -> str:
    return f"STORAGE_{provider_id.upper()}_{suffix}"


def _flag(value: bool) -> str:
    return str(value).lower()


def build_environment(args: ChartMuseumArgs, storage: StorageResult) -> Tuple[EnvVar, ...]:
    """Build the ordered environment for the chartmuseum container.

    chartmuseum only understands DISABLE_API and DISABLE_METRICS, so the
    user facing ``api_enabled``/``metrics_enabled`` flags are emitted inverted.
    Region and bucket names follow the STORAGE_<PROVIDER>_* convention of the
    storage backend that was provisioned. Credentials are always referenced
    from the provisioned secret, never inlined.
    """
    env = [
        EnvVar("DISABLE_API", _flag(not args.api_enabled)),
        EnvVar("DISABLE_METRICS", _flag(not args.metrics_enabled)),
        EnvVar("LOG_JSON", "true"),
        EnvVar("PROV_POST_FORM_FIELD_NAME", "prov"),
        EnvVar("STORAGE", storage.provider_id),
        EnvVar(env_var_name(storage.provider_id, "REGION"), storage.region),
        EnvVar(env_var_name(storage.provider_id, "BUCKET"), storage.bucket_name),
    ]

    if storage.credentials is not None:
        for variable, key in storage.credentials.variables:
            env.append(EnvVar(variable, secret_ref=SecretRef(storage.credentials.secret_name, key)))

    return tuple(env)
