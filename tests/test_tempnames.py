import os

import pytest

from chatlogkit.tempnames import (
    ParsedTempName,
    cache_key,
    clean_process_name,
    extract_base_name,
    extract_file_extension,
    get_process_name,
    hash_file_content,
    hash_string,
    is_auxiliary_database_file,
    parse_hash_components,
    parse_temp_name,
    temp_file_name,
    version_key,
    xxh64,
)


def test_xxh64_empty_input():
    assert xxh64(b"", 0) == 0xEF46DB3751D8E999


def test_xxh64_abc():
    assert xxh64(b"abc", 0) == 0x44BC2CF5AD770999


def test_xxh64_seed_changes_result():
    assert xxh64(b"abc", 1) != xxh64(b"abc", 0)


@pytest.mark.parametrize("size", [3, 7, 8, 12, 31, 32, 33, 64, 100, 1000])
def test_xxh64_is_deterministic_and_length_sensitive(size):
    data = bytes(range(256)) * 4
    first = xxh64(data[:size], 0)
    assert first == xxh64(data[:size], 0)
    assert first != xxh64(data[: size + 1], 0)
    assert 0 <= first < 2**64


def test_hash_string_fnv1a_offset_basis():
    assert hash_string("") == "811c9dc5"


def test_hash_string_single_char():
    assert hash_string("a") == "e40c292c"


def test_hash_string_differs_for_paths():
    assert hash_string("/a/b.txt") != hash_string("/a/c.txt")
    assert len(hash_string("/a/b.txt")) <= 8


def test_hash_file_content_matches_xxh64(tmp_path):
    content = b"hello world" * 50
    target = tmp_path / "data.bin"
    target.write_bytes(content)
    assert hash_file_content(str(target)) == format(xxh64(content, 0), "x")


def test_hash_file_content_missing_file(tmp_path):
    with pytest.raises(OSError):
        hash_file_content(str(tmp_path / "missing"))


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/tmp/report.txt", "txt"),
        ("/tmp/data.db", "db"),
        ("/tmp/data.db-wal", "db-wal"),
        ("/tmp/noext", "bin"),
        ("/tmp/archive.tar.gz", "gz"),
    ],
)
def test_extract_file_extension(path, expected):
    assert extract_file_extension(path) == expected


def test_parse_hash_components():
    assert parse_hash_components("abc_def") == ("abc", "def")
    assert parse_hash_components("abc_def_ghi") == ("abc", "def")
    assert parse_hash_components("abc") == ("abc", "")
    assert parse_hash_components("") == ("", "")


def test_is_auxiliary_database_file():
    assert is_auxiliary_database_file("db", "db-shm")
    assert is_auxiliary_database_file("db", "db-wal")
    assert not is_auxiliary_database_file("db", "db")
    assert not is_auxiliary_database_file("txt", "db-wal")


@pytest.mark.parametrize(
    "path, expected",
    [
        (os.path.join("a", "b", "report.txt"), "report"),
        (os.path.join("a", "noext"), "noext"),
        (os.path.join("a", ".bashrc"), "file"),
        ("archive.tar.gz", "archive.tar"),
    ],
)
def test_extract_base_name(path, expected):
    assert extract_base_name(path) == expected


def test_clean_process_name():
    assert clean_process_name("my app.v2") == "my_app_v2"
    assert clean_process_name("ok-name_1") == "ok-name_1"
    assert clean_process_name("中") == "_"


def test_get_process_name_is_safe():
    name = get_process_name()
    assert name
    assert clean_process_name(name) == name


def test_cache_and_version_keys():
    key = cache_key("inst", "base", "db", "p1", "d1")
    assert key == "inst_base_db_p1_d1"
    assert key.startswith(version_key("inst", "base", "db", "p1") + "_")


def test_temp_file_name_round_trip():
    original = os.path.join(os.sep, "data", "msg", "message_0.db")
    data_hash = "0123456789abcdef0123"
    name = temp_file_name("inst", original, data_hash)
    assert name.endswith(".db")
    parsed = parse_temp_name("inst", name)
    assert parsed == ParsedTempName(
        base_name="message_0",
        ext="db",
        path_hash=hash_string(original)[:8],
        data_hash=data_hash[:16],
    )
    assert parsed.combined_hash == f"{parsed.path_hash}_{parsed.data_hash}"


def test_temp_file_name_without_extension_round_trip():
    original = os.path.join(os.sep, "data", "noext")
    name = temp_file_name("inst", original, "abcd")
    parsed = parse_temp_name("inst", name)
    assert parsed is not None
    assert parsed.ext == "bin"
    assert parsed.base_name == "noext"
    assert parsed.data_hash == "abcd"


def test_temp_file_name_truncates_long_base_name():
    original = os.path.join(os.sep, "data", "x" * 300 + ".txt")
    name = temp_file_name("inst", original, "abcd")
    parsed = parse_temp_name("inst", name)
    assert parsed.base_name == "x" * 100


def test_parse_temp_name_rejects_other_instance():
    name = temp_file_name("inst", os.path.join(os.sep, "a.db"), "abcd")
    assert parse_temp_name("other", name) is None


def test_parse_temp_name_rejects_too_few_parts():
    assert parse_temp_name("inst", "inst_+base_+db_+hash.db") is None


def test_parse_temp_name_rejects_auxiliary_files():
    name = temp_file_name("inst", os.path.join(os.sep, "a.db"), "abcd")
    assert parse_temp_name("inst", name) is not None
    assert parse_temp_name("inst", name + "-wal") is None
    assert parse_temp_name("inst", name + "-shm") is None


def test_parse_temp_name_rejects_extension_mismatch():
    assert parse_temp_name("inst", "inst_+base_+db_+p_+d.txt") is None


def test_parse_temp_name_strips_suffix_from_data_hash():
    parsed = parse_temp_name("inst", "inst_+base_+txt_+p_+d.txt")
    assert parsed.data_hash == "d"
    assert parsed.path_hash == "p"
    assert parsed.base_name == "base"