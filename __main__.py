import pulumi

from chartmuseum import ChartMuseum
from config import load_config


def main():
    stack_config = pulumi.Config()
    config_data = load_config(stack_config.get("configFile") or "config.yaml")
    name = config_data.pop("name", "chartmuseum")

    try:
        chartmuseum = ChartMuseum(name, config_data)
    except Exception as e:
        pulumi.log.error(f"Failed to build chartmuseum '{name}': {e}")
        raise

    graph = chartmuseum.graph
    pulumi.export("namespace", graph.namespace.metadata.name)
    pulumi.export("bucket", graph.storage.bucket_name)
    pulumi.export("service", graph.service.metadata.name)


if __name__ == "__main__":
    main()
