from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import pulumi
import pulumi_kubernetes as k8s

from config import ChartMuseumArgs, resolve_args
from environment import EnvVar, build_environment
from storage import NAMESPACE, ROOT, StorageProvider, StorageResult, StorageScope, get_storage_provider

CONTAINER_PORT = 8080
PORT_NAME = "http"
HEALTH_PATH = "/health"

PARENT = "parent"
DEPENDS_ON = "depends_on"


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    kind: str


@dataclass(frozen=True)
class ResourceGraph:
    namespace: k8s.core.v1.Namespace
    storage: StorageResult
    environment: Tuple[EnvVar, ...]
    deployment: k8s.apps.v1.Deployment
    service: k8s.core.v1.Service
    edges: Tuple[Edge, ...]
    order: Tuple[str, ...]

    def parent_of(self, key: str) -> Optional[str]:
        for edge in self.edges:
            if edge.source == key and edge.kind == PARENT:
                return edge.target
        return None

    def dependencies_of(self, key: str) -> Tuple[str, ...]:
        return tuple(edge.target for edge in self.edges if edge.source == key and edge.kind == DEPENDS_ON)


def release_labels(name: str) -> Dict[str, str]:
    return {
        "app": "chartmuseum",
        "release": name,
    }


def probe_args() -> k8s.core.v1.ProbeArgs:
    return k8s.core.v1.ProbeArgs(
        http_get=k8s.core.v1.HTTPGetActionArgs(
            path=HEALTH_PATH,
            port=PORT_NAME,
        ),
        failure_threshold=3,
        initial_delay_seconds=5,
        period_seconds=10,
        success_threshold=1,
        timeout_seconds=1,
    )


def deployment_spec(name: str, args: ChartMuseumArgs, environment: Sequence[EnvVar]) -> k8s.apps.v1.DeploymentSpecArgs:
    labels = release_labels(name)
    return k8s.apps.v1.DeploymentSpecArgs(
        selector=k8s.meta.v1.LabelSelectorArgs(match_labels=labels),
        replicas=args.replicas,
        strategy=k8s.apps.v1.DeploymentStrategyArgs(
            type="RollingUpdate",
            rolling_update=k8s.apps.v1.RollingUpdateDeploymentArgs(max_unavailable=0),
        ),
        template=k8s.core.v1.PodTemplateSpecArgs(
            metadata=k8s.meta.v1.ObjectMetaArgs(name=name, labels=labels),
            spec=k8s.core.v1.PodSpecArgs(
                security_context=k8s.core.v1.PodSecurityContextArgs(fs_group=1000),
                containers=[
                    k8s.core.v1.ContainerArgs(
                        name="chartmuseum",
                        image=args.image,
                        image_pull_policy="IfNotPresent",
                        env=[env_var.to_args() for env_var in environment],
                        args=[f"--port={CONTAINER_PORT}"],
                        ports=[k8s.core.v1.ContainerPortArgs(name=PORT_NAME, container_port=CONTAINER_PORT)],
                        liveness_probe=probe_args(),
                        readiness_probe=probe_args(),
                        volume_mounts=[k8s.core.v1.VolumeMountArgs(mount_path="/storage", name="storage-volume")],
                    )
                ],
                volumes=[
                    k8s.core.v1.VolumeArgs(
                        name="storage-volume",
                        empty_dir=k8s.core.v1.EmptyDirVolumeSourceArgs(),
                    )
                ],
            ),
        ),
    )


def service_spec(name: str, args: ChartMuseumArgs) -> k8s.core.v1.ServiceSpecArgs:
    return k8s.core.v1.ServiceSpecArgs(
        type=args.service.type,
        ports=[
            k8s.core.v1.ServicePortArgs(
                port=args.service.port,
                target_port=PORT_NAME,
                protocol="TCP",
                name=PORT_NAME,
            )
        ],
        selector=release_labels(name),
    )


def compose(
    name: str,
    args: Union[Mapping, ChartMuseumArgs, None],
    parent: Optional[pulumi.Resource] = None,
    provider: Optional[StorageProvider] = None,
) -> ResourceGraph:
    """Declare the chartmuseum resources and return them as a ResourceGraph.

    Arguments and the storage provider are validated before anything is declared,
    so a ConfigurationError or UnsupportedProviderError leaves no partial graph behind.
    The namespace owns the deployment, the service and the credential secret; the
    cloud storage resources are owned by ``parent``.
    """
    args = resolve_args(args)
    if provider is None:
        provider = get_storage_provider(args.storage.provider)

    labels = release_labels(name)
    resources: Dict[str, pulumi.Resource] = {}
    edges = []
    order = []

    def declare(key: str, resource: pulumi.Resource, owner: str, depends_on: Tuple[str, ...] = ()):
        edges.append(Edge(key, owner, PARENT))
        edges.extend(Edge(key, dependency, DEPENDS_ON) for dependency in depends_on)
        order.append(key)
        resources[key] = resource

    def dependencies(keys: Tuple[str, ...]):
        return [resources[key] for key in keys]

    namespace = k8s.core.v1.Namespace(
        f"{name}-namespace",
        metadata=k8s.meta.v1.ObjectMetaArgs(name=args.namespace, labels=labels),
        opts=pulumi.ResourceOptions(parent=parent),
    )
    declare(NAMESPACE, namespace, ROOT)
    pulumi.log.info(f"Declared namespace: {args.namespace}")

    storage = provider.provision(name, args, StorageScope(parent=parent, namespace=namespace, labels=labels))
    for declared in storage.resources:
        declare(declared.key, declared.resource, declared.owner, declared.depends_on)

    environment = build_environment(args, storage)

    deployment_depends_on = ("bucket",)
    deployment = k8s.apps.v1.Deployment(
        f"{name}-deployment",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            namespace=namespace.metadata.name,
            name=name,
            labels=labels,
        ),
        spec=deployment_spec(name, args, environment),
        opts=pulumi.ResourceOptions(parent=namespace, depends_on=dependencies(deployment_depends_on)),
    )
    declare("deployment", deployment, NAMESPACE, deployment_depends_on)
    pulumi.log.info(f"Declared deployment: {name} ({args.replicas} replicas, storage={storage.provider_id})")

    service = k8s.core.v1.Service(
        f"{name}-service",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            namespace=namespace.metadata.name,
            name=name,
            labels=labels,
        ),
        spec=service_spec(name, args),
        opts=pulumi.ResourceOptions(parent=namespace),
    )
    declare("service", service, NAMESPACE)
    pulumi.log.info(f"Declared service: {name} ({args.service.type}:{args.service.port})")

    return ResourceGraph(
        namespace=namespace,
        storage=storage,
        environment=environment,
        deployment=deployment,
        service=service,
        edges=tuple(edges),
        order=tuple(order),
    )


class ChartMuseum(pulumi.ComponentResource):
    def __init__(
        self,
        name: str,
        args: Union[Mapping, ChartMuseumArgs, None] = None,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        # fail before the component itself is registered
        resolved = resolve_args(args)
        provider = get_storage_provider(resolved.storage.provider)

        super().__init__("chartmuseum:index:ChartMuseum", name, {}, opts)

        self.graph = compose(name, resolved, parent=self, provider=provider)
        self.register_outputs({
            "namespace": self.graph.namespace.metadata.name,
            "bucket_name": self.graph.storage.bucket_name,
            "service_name": self.graph.service.metadata.name,
        })
