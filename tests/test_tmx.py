"""Tests for TMX document decoding"""

import base64
import struct
import xml.etree.ElementTree as ET

import numpy as np
import pytest

from tmx_arena.errors import (
    DecodeError, MissingLayerDataError, MissingTileImageError,
    ResourceLoadError, TMXError, UnsupportedEncodingError,
)
from tmx_arena.map.tmx import (
    ObjectLayer, TileLayer, TileMapDecoder, decode_cell_data, load_tmx_map,
    parse_properties, split_cell_value,
)

TERRAIN = """
    <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16">
        <image source="terrain.png" width="128" height="32"/>
    </tileset>"""

CSV_LAYER = """
    <layer id="{id}" name="{name}" width="4" height="2">
        <data encoding="csv">
1,2,0,0,
0,0,3,4
        </data>
    </layer>"""


def map_xml(body, tilesets=TERRAIN, width=4, height=2):
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<map version="1.10" orientation="orthogonal" width="{width}" height="{height}" '
        f'tilewidth="16" tileheight="16">{tilesets}{body}\n</map>\n'
    )


def data_elem(text, **attrib):
    elem = ET.Element('data', attrib)
    elem.text = text
    return elem


def base64_cells(values):
    return base64.b64encode(struct.pack(f'<{len(values)}I', *values)).decode('ascii')


# =============================================================================
# CELL DATA
# =============================================================================

class TestCellData:

    def test_csv_cells(self):
        ids, rotations = decode_cell_data(data_elem("1,2,0,\n65,\n", encoding="csv"))
        assert ids.tolist() == [1, 2, 0, 65]
        assert rotations.tolist() == [0, 0, 0, 0]
        assert ids.dtype == np.uint32
        assert rotations.dtype == np.uint8

    def test_flags_split_from_gid(self):
        value = (4 << 28) | 5
        ids, rotations = decode_cell_data(data_elem(str(value), encoding="csv"))
        assert ids.tolist() == [5]
        assert rotations.tolist() == [4]

    def test_base64_matches_csv(self):
        values = [1, 2, 0, (2 << 28) | 17, (6 << 28) | 3, 0x0FFFFFFF]
        csv_ids, csv_rot = decode_cell_data(
            data_elem(",".join(str(v) for v in values), encoding="csv"))
        b64_ids, b64_rot = decode_cell_data(data_elem(base64_cells(values), encoding="base64"))
        assert b64_ids.tolist() == csv_ids.tolist()
        assert b64_rot.tolist() == csv_rot.tolist()

    def test_base64_is_little_endian(self):
        text = base64.b64encode(bytes([0x05, 0x00, 0x00, 0x40])).decode('ascii')
        ids, rotations = decode_cell_data(data_elem(text, encoding="base64"))
        assert ids.tolist() == [5]
        assert rotations.tolist() == [4]

    def test_base64_tolerates_surrounding_whitespace(self):
        text = "\n   " + base64_cells([7, 8]) + "\n  "
        ids, _ = decode_cell_data(data_elem(text, encoding="base64"))
        assert ids.tolist() == [7, 8]

    def test_base64_length_not_multiple_of_four(self):
        text = base64.b64encode(b"\x01\x00\x00\x00\x02\x00").decode('ascii')
        with pytest.raises(DecodeError):
            decode_cell_data(data_elem(text, encoding="base64"))

    def test_invalid_base64(self):
        with pytest.raises(DecodeError):
            decode_cell_data(data_elem("AAA", encoding="base64"))

    @pytest.mark.parametrize("text", ["1,two,3", "1,-4", "1,4294967296"])
    def test_invalid_csv_values(self, text):
        with pytest.raises(DecodeError):
            decode_cell_data(data_elem(text, encoding="csv"))

    @pytest.mark.parametrize("attrib", [
        {"encoding": "base64", "compression": "zlib"},
        {"encoding": "base64", "compression": "gzip"},
        {"encoding": "csv", "compressionlevel": "1"},
        {"encoding": "xml"},
        {},
    ])
    def test_unsupported_encodings(self, attrib):
        with pytest.raises(UnsupportedEncodingError):
            decode_cell_data(data_elem("1,2", **attrib))

    def test_compressionlevel_zero_is_accepted(self):
        ids, _ = decode_cell_data(data_elem("1,2", encoding="csv", compressionlevel="0"))
        assert ids.tolist() == [1, 2]


class TestSplitCellValue:

    @pytest.mark.parametrize("flags", range(0, 16, 2))
    @pytest.mark.parametrize("gid", [0, 1, 5, 1000, 0x0FFFFFFF])
    def test_recovers_flags_and_gid(self, flags, gid):
        assert split_cell_value((flags << 28) | gid) == (flags, gid)

    @pytest.mark.parametrize("encoding", ["csv", "base64"])
    def test_decoder_recovers_flags_and_gids(self, encoding):
        pairs = [(flags, gid) for flags in range(0, 16, 2) for gid in (0, 1, 5, 0x0FFFFFFF)]
        values = [(flags << 28) | gid for flags, gid in pairs]
        text = ",".join(str(v) for v in values) if encoding == "csv" else base64_cells(values)

        ids, rotations = decode_cell_data(data_elem(text, encoding=encoding))
        assert list(zip(rotations.tolist(), ids.tolist())) == pairs

    def test_bit_28_belongs_to_both_fields(self):
        flags, gid = split_cell_value((1 << 28) | 5)
        assert flags == 1
        assert gid == 0x10000005

    def test_all_flags_set(self):
        assert split_cell_value(0xF0000001) == (0xF, 0x10000001)


# =============================================================================
# LAYERS
# =============================================================================

class TestTileLayer:

    def test_from_xml(self):
        elem = ET.fromstring(
            '<layer id="3" name="Ground" width="2" height="2">'
            '<properties><property name="solid" value="true"/></properties>'
            '<data encoding="csv">1,0,0,2</data></layer>'
        )
        layer = TileLayer.from_xml(elem)
        assert layer.name == "Ground"
        assert layer.id == 3
        assert layer.properties == {"solid": "true"}
        assert layer.tile_at(0, 0) == 1
        assert layer.tile_at(1, 1) == 2
        assert layer.tile_at(2, 0) == -1

    def test_missing_data(self):
        elem = ET.fromstring('<layer name="Empty" width="2" height="2"/>')
        with pytest.raises(MissingLayerDataError, match="Empty"):
            TileLayer.from_xml(elem)

    def test_compressionlevel_on_layer(self):
        elem = ET.fromstring(
            '<layer name="Ground" width="1" height="1" compressionlevel="1">'
            '<data encoding="csv">1</data></layer>'
        )
        with pytest.raises(UnsupportedEncodingError):
            TileLayer.from_xml(elem)

    def test_decode_error_names_the_layer(self):
        elem = ET.fromstring(
            '<layer name="Broken" width="1" height="1"><data encoding="csv">x</data></layer>'
        )
        with pytest.raises(DecodeError, match="Broken"):
            TileLayer.from_xml(elem)

    def test_cell_count_must_match_size(self):
        elem = ET.fromstring(
            '<layer name="Short" width="3" height="3"><data encoding="csv">1,2,3</data></layer>'
        )
        with pytest.raises(DecodeError, match="expected 3x3"):
            TileLayer.from_xml(elem)

    def test_missing_attributes_default(self):
        layer = TileLayer.from_xml(ET.fromstring('<layer><data encoding="csv"></data></layer>'))
        assert layer.name == ""
        assert layer.width == 0
        assert layer.height == 0
        assert layer.tile_ids.size == 0

    def test_rotation_at(self):
        elem = ET.fromstring(
            f'<layer width="2" height="1"><data encoding="csv">{(2 << 28) | 1},1</data></layer>'
        )
        layer = TileLayer.from_xml(elem)
        assert layer.rotation_at(0, 0) == 2
        assert layer.rotation_at(1, 0) == 0


class TestObjectLayer:

    def test_from_xml(self):
        elem = ET.fromstring(
            '<objectgroup id="2" name="Spawns">'
            '<object id="1" x="32" y="48"/><object id="2" x="0" y="0"/>'
            '</objectgroup>'
        )
        group = ObjectLayer.from_xml(elem)
        assert group.name == "Spawns"
        assert group.id == 2
        assert [obj["x"] for obj in group.objects] == ["32", "0"]

    def test_properties(self):
        elem = ET.fromstring(
            '<objectgroup><properties>'
            '<property name="a" value="1"/><property name="b" value="two"/>'
            '</properties></objectgroup>'
        )
        assert parse_properties(elem) == {"a": "1", "b": "two"}


# =============================================================================
# MAP LOADING
# =============================================================================

class TestLoadMap:

    def test_load_basic_map(self, write_file, image_loader, tmp_path):
        path = write_file("level.tmx", map_xml(CSV_LAYER.format(id=1, name="Ground")))
        level = load_tmx_map(path, image_loader=image_loader)

        assert (level.width, level.height) == (4, 2)
        assert (level.tile_width, level.tile_height) == (16, 16)
        assert (level.pixel_width, level.pixel_height) == (64, 32)
        assert level.path == path

        assert len(level.tile_sets) == 1
        terrain = level.tile_sets[0]
        assert terrain.name == "terrain"
        assert terrain.first_gid == 1
        assert (terrain.columns, terrain.rows) == (8, 2)
        assert terrain.flipped_image is not None
        assert image_loader.requested == [tmp_path / "terrain.png"]

        ground = level.get_layer_by_name("Ground")
        assert ground.tile_ids.tolist() == [1, 2, 0, 0, 0, 0, 3, 4]

    def test_layer_order_is_document_order(self, write_file, image_loader):
        body = (
            CSV_LAYER.format(id=1, name="Ground")
            + '<objectgroup id="2" name="Spawns"/>'
            + CSV_LAYER.format(id=3, name="Roofs")
            + '<objectgroup id="4" name="Triggers"/>'
            + CSV_LAYER.format(id=5, name="Birds")
        )
        level = load_tmx_map(write_file("level.tmx", map_xml(body)), image_loader=image_loader)

        assert [layer.name for layer in level.layers] == [
            "Ground", "Spawns", "Roofs", "Triggers", "Birds"]
        assert [type(layer) for layer in level.layers] == [
            TileLayer, ObjectLayer, TileLayer, ObjectLayer, TileLayer]
        assert [layer.name for layer in level.tile_layers()] == ["Ground", "Roofs", "Birds"]

    def test_tile_sets_sorted_by_first_gid(self, write_file, image_loader, make_atlas):
        image_loader.add("props.png", make_atlas(4, 4))
        tilesets = (
            '<tileset firstgid="17" name="terrain" tilewidth="16" tileheight="16">'
            '<image source="terrain.png"/></tileset>'
            '<tileset firstgid="1" name="props" tilewidth="16" tileheight="16">'
            '<image source="props.png"/></tileset>'
        )
        path = write_file("level.tmx", map_xml("", tilesets=tilesets))
        level = TileMapDecoder(image_loader, max_workers=2).load(path)

        assert [(ts.name, ts.first_gid) for ts in level.tile_sets] == [
            ("props", 1), ("terrain", 17)]

    def test_external_tile_set_relative_paths(self, write_file, image_loader, make_atlas, tmp_path):
        image_loader.add("props.png", make_atlas(4, 4, tile_width=32))
        write_file("tilesets/props.tsx",
                   '<?xml version="1.0"?>\n'
                   '<tileset name="props" tilewidth="32" tileheight="32" spacing="0">'
                   '<image source="props.png"/></tileset>')
        tilesets = TERRAIN + '<tileset firstgid="65" source="tilesets/props.tsx"/>'
        level = load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                             image_loader=image_loader)

        props = level.tile_sets[1]
        assert props.name == "props"
        assert props.first_gid == 65
        assert props.tile_width == 32
        assert (props.columns, props.rows) == (4, 4)
        assert tmp_path / "tilesets" / "props.png" in image_loader.requested

    def test_tile_height_defaults_to_width(self, write_file, image_loader):
        tilesets = ('<tileset firstgid="1" name="terrain" tilewidth="16">'
                    '<image source="terrain.png"/></tileset>')
        level = load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                             image_loader=image_loader)
        assert level.tile_sets[0].tile_height == 16

    def test_margin_and_spacing(self, write_file, image_loader, make_atlas):
        image_loader.add("spaced.png", make_atlas(5, 3, tile_width=18))
        tilesets = ('<tileset firstgid="1" name="spaced" tilewidth="16" tileheight="16" '
                    'margin="1" spacing="2"><image source="spaced.png"/></tileset>')
        level = load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                             image_loader=image_loader)
        spaced = level.tile_sets[0]
        # (90 - 2 + 2) // 18 = 5, (54 - 2 + 2) // 18 = 3
        assert (spaced.columns, spaced.rows) == (5, 3)
        assert (spaced.margin, spaced.spacing) == (1, 2)

    @pytest.mark.parametrize("body", [
        '<layer name="Ground" width="1" height="1" compressionlevel="1">'
        '<data encoding="csv">1</data></layer>',
        '<layer name="Ground" width="1" height="1">'
        '<data encoding="csv" compressionlevel="1">1</data></layer>',
    ])
    def test_compressed_layer_aborts_load(self, write_file, image_loader, body):
        with pytest.raises(UnsupportedEncodingError):
            load_tmx_map(write_file("level.tmx", map_xml(body, width=1, height=1)),
                         image_loader=image_loader)

    @pytest.mark.parametrize("tileset", [
        '<tileset firstgid="1" name="bare" tilewidth="16" tileheight="16"/>',
        '<tileset firstgid="1" name="late" tilewidth="16" tileheight="16">'
        '<properties/><image source="terrain.png"/></tileset>',
        '<tileset firstgid="1" name="nosrc" tilewidth="16" tileheight="16"><image/></tileset>',
    ])
    def test_missing_tile_image(self, write_file, image_loader, tileset):
        with pytest.raises(MissingTileImageError):
            load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tileset)),
                         image_loader=image_loader)

    def test_missing_layer_data(self, write_file, image_loader):
        body = '<layer name="Ground" width="4" height="2"/>'
        with pytest.raises(MissingLayerDataError):
            load_tmx_map(write_file("level.tmx", map_xml(body)), image_loader=image_loader)

    def test_missing_document(self, tmp_path, image_loader):
        with pytest.raises(ResourceLoadError):
            load_tmx_map(tmp_path / "nowhere.tmx", image_loader=image_loader)

    def test_missing_external_tile_set(self, write_file, image_loader):
        tilesets = '<tileset firstgid="1" source="missing.tsx"/>'
        with pytest.raises(ResourceLoadError):
            load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                         image_loader=image_loader)

    def test_missing_image(self, write_file, image_loader):
        tilesets = ('<tileset firstgid="1" name="ghost" tilewidth="16" tileheight="16">'
                    '<image source="ghost.png"/></tileset>')
        with pytest.raises(ResourceLoadError):
            load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                         image_loader=image_loader)

    def test_image_smaller_than_a_tile(self, write_file, image_loader, make_atlas):
        image_loader.add("tiny.png", make_atlas(1, 1, tile_width=8))
        tilesets = ('<tileset firstgid="1" name="tiny" tilewidth="16" tileheight="16">'
                    '<image source="tiny.png"/></tileset>')
        with pytest.raises(DecodeError):
            load_tmx_map(write_file("level.tmx", map_xml("", tilesets=tilesets)),
                         image_loader=image_loader)

    def test_malformed_xml(self, write_file, image_loader):
        path = write_file("level.tmx", '<map width="4"><layer></map>')
        with pytest.raises(DecodeError):
            load_tmx_map(path, image_loader=image_loader)

    def test_wrong_root_element(self, write_file, image_loader):
        path = write_file("level.tmx", '<tileset name="oops"/>')
        with pytest.raises(DecodeError, match="<map>"):
            load_tmx_map(path, image_loader=image_loader)

    def test_non_integer_attribute(self, write_file, image_loader):
        path = write_file("level.tmx", '<map width="wide" height="2"/>')
        with pytest.raises(DecodeError):
            load_tmx_map(path, image_loader=image_loader)

    def test_missing_map_attributes_default_to_zero(self, write_file, image_loader):
        level = load_tmx_map(write_file("level.tmx", "<map/>"), image_loader=image_loader)
        assert (level.width, level.height, level.tile_width, level.tile_height) == (0, 0, 0, 0)
        assert level.tile_sets == []
        assert level.layers == []

    def test_all_errors_share_a_base(self):
        for error in (DecodeError, UnsupportedEncodingError, MissingTileImageError,
                      MissingLayerDataError, ResourceLoadError):
            assert issubclass(error, TMXError)
