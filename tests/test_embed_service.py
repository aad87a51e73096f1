from pathlib import Path

import pytest

from srcembed.config import Settings
from srcembed.embed.errors import MalformedDeclarationError
from srcembed.embed.service import EmbedService, embed_source

from conftest import load_fixture, write_rust


def test_struct_scenario():
    output = embed_source("pub struct Foo { pub x: u32 }")

    assert output == (
        "#[doc(hidden)]\n"
        'pub const __FOO_SOURCE__: &str = "pub struct Foo { pub x: u32 }";\n'
        "\n"
        "pub struct Foo { pub x: u32 }"
    )


def test_function_scenario():
    source = 'pub fn example() -> &\'static str { "hi" }'
    output = embed_source(source)

    assert output == (
        "#[doc(hidden)]\n"
        'pub const __EXAMPLE_SOURCE__: &str = "pub fn example() -> &\'static str { \\"hi\\" }";\n'
        "\n" + source
    )


def test_non_ascii_item_name_is_uppercased():
    output = embed_source("struct Größe;")

    assert output == (
        "#[doc(hidden)]\n"
        'pub const __GRÖSSE_SOURCE__: &str = "struct Größe;";\n'
        "\n"
        "struct Größe;"
    )


@pytest.mark.parametrize(
    ("source", "constant"),
    [
        ("impl module::Widget { fn new() -> Self { Widget } }", "__WIDGET_SOURCE__"),
        ("impl Summary for (u8, u16) {}", "__UNKNOWN_SOURCE__"),
        ("static GREETING: &str = \"hello\";", "__ITEM_SOURCE__"),
    ],
)
def test_constant_names_for_impl_and_fallbacks(service, source, constant):
    unit = service.expand_declaration(source)

    assert unit.constant.name == constant
    assert unit.constant.value == source
    assert unit.declaration == source


def test_marker_prefix_is_consumed(service):
    unit = service.expand_declaration("#[src_embed]\n/// Docs stay.\nfn documented() {}")

    assert unit.constant.name == "__DOCUMENTED_SOURCE__"
    assert unit.constant.value == "/// Docs stay.\nfn documented() {}"


def test_expansion_is_deterministic():
    source = "#[src_embed]\ntrait Visitor { fn visit(&mut self); }"

    assert embed_source(source) == embed_source(source)


def test_malformed_declaration_propagates(service):
    with pytest.raises(MalformedDeclarationError):
        service.expand_declaration("pub struct Broken {")


def test_expand_source_rewrites_in_place(service):
    source = (
        "use std::fmt;\n"
        "\n"
        "/// A widget.\n"
        "#[src_embed]\n"
        "#[derive(Debug)]\n"
        "pub struct Widget {\n"
        "    pub id: u32,\n"
        "}\n"
        "\n"
        "fn untouched() {}\n"
    )
    expansion = service.expand_source(source, Path("src/lib.rs"))

    assert expansion.changed
    assert expansion.diagnostics == []
    assert expansion.expanded == (
        "use std::fmt;\n"
        "\n"
        "#[doc(hidden)]\n"
        'pub const __WIDGET_SOURCE__: &str = "/// A widget.\\n#[derive(Debug)]\\npub struct Widget {\\n    pub id: u32,\\n}";\n'
        "\n"
        "/// A widget.\n"
        "#[derive(Debug)]\n"
        "pub struct Widget {\n"
        "    pub id: u32,\n"
        "}\n"
        "\n"
        "fn untouched() {}\n"
    )


def test_expand_source_keeps_indentation_inside_modules(service):
    source = (
        "mod inner {\n"
        "    #[src_embed]\n"
        "    pub fn helper() -> u8 {\n"
        "        1\n"
        "    }\n"
        "}\n"
    )
    expansion = service.expand_source(source, Path("lib.rs"))

    assert expansion.expanded == (
        "mod inner {\n"
        "    #[doc(hidden)]\n"
        '    pub const __HELPER_SOURCE__: &str = "pub fn helper() -> u8 {\\n        1\\n    }";\n'
        "\n"
        "    pub fn helper() -> u8 {\n"
        "        1\n"
        "    }\n"
        "}\n"
    )


def test_expand_source_round_trips_every_fixture_declaration(service):
    source = load_fixture("shapes.rs")
    expansion = service.expand_source(source, Path("shapes.rs"))
    parser = service.registry.get("rust")

    embedded = parser.embedded_sources(expansion.expanded)

    assert set(embedded) == {
        "__POINT_SOURCE__",
        "__DIRECTION_SOURCE__",
        "__ORIGIN_SOURCE__",
        "__SHAPE_SOURCE__",
        "__POLYGON_SOURCE__",
        "__UNKNOWN_SOURCE__",
        "__ITEM_SOURCE__",
    }
    for site in expansion.sites:
        constant = f"__{site.declaration.derived_name.upper()}_SOURCE__"
        assert embedded[constant] == site.declaration.raw_text
        assert site.declaration.raw_text in expansion.expanded
    assert "#[src_embed]" not in expansion.expanded
    assert 'pub fn untouched() -> &\'static str {\n    "no marker here"\n}\n' in expansion.expanded


def test_expand_source_without_markers_is_identity(service):
    source = load_fixture("plain.rs")
    expansion = service.expand_source(source, Path("plain.rs"))

    assert not expansion.changed
    assert expansion.sites == []
    assert expansion.expanded == source


def test_nested_markers_expand_inner_after_capturing_outer(service):
    source = (
        "#[src_embed]\n"
        "mod shapes {\n"
        "    #[src_embed]\n"
        "    pub struct Square;\n"
        "}\n"
    )
    expansion = service.expand_source(source, Path("lib.rs"))
    embedded = service.registry.get("rust").embedded_sources(expansion.expanded)

    assert embedded["__ITEM_SOURCE__"] == (
        "mod shapes {\n"
        "    #[src_embed]\n"
        "    pub struct Square;\n"
        "}"
    )
    assert embedded["__SQUARE_SOURCE__"] == "pub struct Square;"
    assert expansion.expanded.endswith(
        "mod shapes {\n"
        "    #[doc(hidden)]\n"
        '    pub const __SQUARE_SOURCE__: &str = "pub struct Square;";\n'
        "\n"
        "    pub struct Square;\n"
        "}\n"
    )


def test_failed_declaration_does_not_block_others(service):
    source = (
        "struct Holder {\n"
        "    #[src_embed]\n"
        "    field: u8,\n"
        "}\n"
        "\n"
        "#[src_embed]\n"
        "struct Fine;\n"
    )
    expansion = service.expand_source(source, Path("lib.rs"))

    assert len(expansion.diagnostics) == 1
    diagnostic = expansion.diagnostics[0]
    assert diagnostic.format().startswith("lib.rs:2:5: error:")
    assert expansion.expanded.startswith(
        "struct Holder {\n    #[src_embed]\n    field: u8,\n}\n"
    )
    assert '__FINE_SOURCE__: &str = "struct Fine;"' in expansion.expanded


def test_malformed_item_is_left_unchanged(service):
    source = "#[src_embed]\nfn broken( {\n"
    expansion = service.expand_source(source, Path("lib.rs"))

    assert len(expansion.diagnostics) == 1
    assert expansion.expanded == source


def test_custom_attribute_names(tmp_path):
    settings = Settings(repo_path=tmp_path, attribute_names=["keep_source"])
    service = EmbedService(settings)
    expansion = service.expand_source("#[keep_source]\nenum Mode { On }\n", Path("lib.rs"))

    assert "__MODE_SOURCE__" in expansion.expanded
    assert "#[keep_source]" not in expansion.expanded


def test_expand_file_writes_output_and_lookup(service, tmp_path):
    source_path = write_rust(
        tmp_path, "src/lib.rs", "#[src_embed]\npub trait Named { fn name(&self) -> String; }\n"
    )
    output_path = tmp_path / "out" / "lib.rs"

    expansion = service.expand_file(source_path, output=output_path)

    assert output_path.read_text() == expansion.expanded
    assert source_path.read_text().startswith("#[src_embed]")
    assert service.lookup(output_path, "Named") == "pub trait Named { fn name(&self) -> String; }"
    assert service.lookup(output_path, "Missing") is None


def test_expand_file_preserves_crlf_bytes(service, tmp_path):
    source_path = write_rust(tmp_path, "lib.rs", "#[src_embed]\r\nstruct Win;\r\nfn f() {}\r\n")

    expansion = service.expand_file(source_path, write=False)

    assert expansion.expanded.endswith("struct Win;\r\nfn f() {}\r\n")
    assert expansion.sites[0].declaration.raw_text == "struct Win;"
