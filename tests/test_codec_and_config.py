from padrelay import codec
from padrelay.config import load_config


def test_codec_roundtrip_including_empty_and_non_ascii():
    for text in ["", "void main(){}", "héllo wörld ✓ 日本語", "<div>\n  x\n</div>" * 50]:
        assert codec.decode(codec.encode(text)) == text


def test_codec_is_deterministic():
    assert codec.encode("same input") == codec.encode("same input")


def test_load_config_defaults_when_file_missing(tmp_path):
    cfg = load_config(str(tmp_path / "nope.yml"))
    assert cfg.server.port == 8080
    assert cfg.storage.backend == "sqlite"
    assert cfg.export.fields == ["dart", "html", "css"]
    assert cfg.ids.max_attempts == 4
    assert cfg.logging.level == "INFO"


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "relay.yml"
    path.write_text(
        "server:\n"
        "  port: 9001\n"
        "storage:\n"
        "  backend: memory\n"
        "export:\n"
        "  fields: [dart, html]\n"
        "ids:\n"
        "  max_attempts: 2\n"
    )
    cfg = load_config(str(path))
    assert cfg.server.port == 9001
    assert cfg.server.host == "127.0.0.1"
    assert cfg.storage.backend == "memory"
    assert cfg.export.fields == ["dart", "html"]
    assert cfg.ids.max_attempts == 2


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    cfg = load_config(str(path))
    assert cfg.storage.db_path == "padrelay.db"
