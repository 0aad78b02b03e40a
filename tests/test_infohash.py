import base64

from torrent_supervisor import infohash

from conftest import TORRENT_BYTES, TORRENT_HASH

HEX_HASH = "0123456789abcdef0123456789abcdef01234567"


def test_from_magnet_hex():
    uri = f"magnet:?xt=urn:btih:{HEX_HASH.upper()}&dn=Some.Movie&tr=udp://t:80"
    assert infohash.from_magnet(uri) == HEX_HASH


def test_from_magnet_base32():
    b32 = base64.b32encode(bytes.fromhex(HEX_HASH)).decode()
    assert infohash.from_magnet(f"magnet:?xt=urn:btih:{b32}") == HEX_HASH


def test_from_magnet_does_not_depend_on_parameter_order():
    uri = f"magnet:?dn=Long.Display.Name.Before.Hash&tr=udp://t:80&xt=urn:btih:{HEX_HASH}"
    assert infohash.from_magnet(uri) == HEX_HASH


def test_from_magnet_rejects_other_links():
    assert infohash.from_magnet("https://example.com/file.torrent") is None
    assert infohash.from_magnet("magnet:?xt=urn:btih:hash123") is None
    assert infohash.from_magnet("") is None


def test_from_torrent_bytes():
    assert infohash.from_torrent_bytes(TORRENT_BYTES) == TORRENT_HASH
    assert infohash.from_torrent_bytes(b"not bencoded") is None


def test_from_torrent_file(tmp_path):
    path = tmp_path / "a.torrent"
    path.write_bytes(TORRENT_BYTES)
    assert infohash.from_torrent_file(str(path)) == TORRENT_HASH


def test_magnet_display_name():
    assert infohash.magnet_display_name(f"magnet:?xt=urn:btih:{HEX_HASH}&dn=Foo") == "Foo"
    assert infohash.magnet_display_name(f"magnet:?xt=urn:btih:{HEX_HASH}") is None


def test_bencoded_data_without_info_is_rejected():
    assert infohash.from_torrent_bytes(b"d8:announce14:http://trackere") is None
    assert infohash.from_torrent_bytes(b"") is None
