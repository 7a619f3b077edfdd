import pulumi
import pytest


class ChartMuseumMocks(pulumi.runtime.Mocks):
    """Records every registered resource and fills in provider computed outputs."""

    def __init__(self):
        self.resources = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources.append(args)
        outputs = dict(args.inputs)
        if args.typ == "aws:s3/bucket:Bucket":
            outputs["bucket"] = f"{args.name}-0a1b2c"
            outputs["arn"] = f"arn:aws:s3:::{args.name}-0a1b2c"
        elif args.typ == "aws:iam/user:User":
            outputs["name"] = f"{args.name}-0a1b2c"
        elif args.typ == "aws:iam/accessKey:AccessKey":
            outputs["secret"] = "wJalrXUtnFEMI/K7MDENG"
        elif args.typ.startswith("kubernetes:") and "metadata" in outputs:
            metadata = dict(outputs["metadata"] or {})
            metadata.setdefault("name", f"{args.name}-0a1b2c")
            outputs["metadata"] = metadata
        return f"{args.name}_id", outputs

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}

    def declared(self, prefix: str):
        return [resource for resource in self.resources if resource.name.startswith(prefix)]


MOCKS = ChartMuseumMocks()
pulumi.runtime.set_mocks(MOCKS, preview=False)


@pytest.fixture
def mocks():
    return MOCKS


@pytest.fixture
def user_args():
    return {"storage": {"provider": "amazon", "region": "us-west-2"}}
