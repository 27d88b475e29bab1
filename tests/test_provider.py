# tests/test_provider.py
from pathlib import Path

import pytest

from cloud.compartments import build_compartment_tree, compartment_name, flatten_compartments
from cloud.filters import DEFAULT_IMAGE_FILTER, ImageFilter
from cloud.provider import CatalogMetadataProvider, MetadataError
from conftest import CATALOG, CREDENTIAL, NETWORK_COMPARTMENT

EXAMPLE_CATALOG = Path(__file__).resolve().parent.parent / "catalog.example.yaml"


async def test_plain_entry(provider):
    shapes = await provider.request(CREDENTIAL, "nodeShapes", {"region": "us-ashburn-1"})
    assert shapes == ["VM.Standard.E4.Flex", "VM.Standard3.Flex"]
    assert provider.calls == [(CREDENTIAL, "nodeShapes", {"region": "us-ashburn-1"}, None)]

async def test_endpoint_entry_wins(provider):
    versions = await provider.request(CREDENTIAL, "ocneVersions", {}, "/meta/ocne")
    assert versions == ["1.7", "1.6"]

async def test_rule_list_matches_params(provider):
    vcns = await provider.request(CREDENTIAL, "vcnIds", {"compartment": NETWORK_COMPARTMENT, "region": "x"})
    assert vcns == {"shared-vcn": "ocid1.vcn.oc1.iad.shared"}

async def test_rule_list_without_match(provider):
    with pytest.raises(MetadataError) as exc:
        await provider.request(CREDENTIAL, "vcnIds", {"compartment": "ocid1.compartment.oc1..apps"})
    assert exc.value.code == "NotFound"

async def test_unknown_resource(provider):
    with pytest.raises(MetadataError, match="unknown resource"):
        await provider.request(CREDENTIAL, "loadBalancers", {})

async def test_unknown_token():
    provider = CatalogMetadataProvider(CATALOG, tokens=[CREDENTIAL])
    with pytest.raises(MetadataError) as exc:
        await provider.request("intruder", "nodeShapes", {})
    assert str(exc.value) == "NotAuthenticated: credential is not authorized"

async def test_no_token_list_accepts_anyone():
    provider = CatalogMetadataProvider(CATALOG)
    assert await provider.request("anyone", "nodeShapes", {})

def test_metadata_error_without_code():
    assert str(MetadataError("boom")) == "boom"

async def test_from_file_reads_example_catalog():
    provider = CatalogMetadataProvider.from_file(EXAMPLE_CATALOG)
    assert "tokens" not in provider.catalog
    assert provider.tokens == {"cattle-global-data:cc-demo"}
    versions = await provider.request("cattle-global-data:cc-demo", "ocneVersions", {}, "/meta/ocne")
    assert all(isinstance(v, str) for v in versions)

def test_from_file_rejects_non_mapping(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        CatalogMetadataProvider.from_file(path)


# -- filters -----------------------------------------------------------------

def test_default_image_filter():
    names = [
        "Oracle-Linux-8.8-2023.09.26-0",
        "Oracle-Linux-8.8-aarch64-2023.09.26-0",
        "Oracle-Linux-9.2-2023.09.26-0",
        "Canonical-Ubuntu-22.04",
        None,
    ]
    assert DEFAULT_IMAGE_FILTER.apply(names) == ["Oracle-Linux-8.8-2023.09.26-0"]

def test_custom_image_filter_exclusions():
    f = ImageFilter(prefix="Oracle-Linux", excluded=("aarch64", "GPU"))
    assert f.matches("Oracle-Linux-9.2-2023")
    assert not f.matches("Oracle-Linux-8.8-Gen2-GPU-2023")


# -- compartments ----------------------------------------------------------------

def test_flatten_is_depth_first_root_first():
    flat = flatten_compartments(CATALOG["compartments"])
    assert [o.label for o in flat] == ["root", "apps", "apps-dev", "network"]
    assert flat[0].value == "ocid1.tenancy.oc1..root"

def test_flatten_tolerates_missing_tree():
    assert flatten_compartments(None) == []
    assert build_compartment_tree("garbage") == []

def test_tree_nodes_start_collapsed():
    tree = build_compartment_tree(CATALOG["compartments"])
    assert len(tree) == 1
    root = tree[0]
    assert not root.is_expanded and not root.is_selected and root.is_visible
    assert [c.id for c in root.children] == ["ocid1.compartment.oc1..apps", NETWORK_COMPARTMENT]

def test_compartment_name_lookup():
    assert compartment_name(CATALOG["compartments"], "ocid1.compartment.oc1..apps-dev") == "apps-dev"
    assert compartment_name(CATALOG["compartments"], "missing") is None
