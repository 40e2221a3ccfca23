from __future__ import annotations

from pathlib import Path

import pytest

from greeter.config import (
    ActorConfig,
    CorsConfig,
    GreeterConfig,
    MailboxConfig,
    StoreConfig,
    Variant,
    discover_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Config dataclass defaults
# ---------------------------------------------------------------------------


class TestMailboxConfig:
    def test_defaults(self) -> None:
        cfg = MailboxConfig()
        assert cfg.capacity is None
        assert cfg.strategy == "drop_new"

    def test_frozen(self) -> None:
        cfg = MailboxConfig()
        with pytest.raises(AttributeError):
            cfg.capacity = 42  # type: ignore[misc]


class TestActorConfig:
    def test_defaults(self) -> None:
        cfg = ActorConfig()
        assert cfg.name == "foo"
        assert cfg.variant is Variant.presence
        assert cfg.recount_delay == 0.5
        assert cfg.send_timeout == 2.0
        assert cfg.ask_timeout == 5.0


class TestCorsConfig:
    def test_defaults(self) -> None:
        cfg = CorsConfig()
        assert cfg.origins == (
            "http://localhost:5173",
            "https://durable-object-frontend.pages.dev",
        )
        assert cfg.allow_headers == ("Origin", "Content-Type", "Authorization")
        assert cfg.allow_methods == ("GET", "OPTIONS", "POST", "PUT", "DELETE")
        assert cfg.allow_credentials is True


class TestGreeterConfigDefaults:
    def test_defaults(self) -> None:
        cfg = GreeterConfig()
        assert cfg.system_name == "greeter"
        assert cfg.store == StoreConfig()
        assert cfg.server.host == "127.0.0.1"
        assert cfg.server.port == 8787
        assert cfg.logging.level == "INFO"


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfigFull:
    def test_full_config(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text("""\
[system]
name = "prod"

[actor]
name = "bar"
variant = "plain"
recount_delay = 1.5
send_timeout = 2
ask_timeout = 3.0

[actor.mailbox]
capacity = 100
strategy = "drop_oldest"

[store]
backend = "sqlite"
path = "data/state.db"

[server]
host = "0.0.0.0"
port = 9000

[cors]
origins = ["https://example.org"]
allow_methods = ["GET"]
allow_credentials = false

[logging]
level = "DEBUG"
colors = false
""")
        cfg = load_config(toml_file)

        assert cfg.system_name == "prod"
        assert cfg.actor == ActorConfig(
            name="bar",
            variant=Variant.plain,
            recount_delay=1.5,
            send_timeout=2.0,
            ask_timeout=3.0,
            mailbox=MailboxConfig(capacity=100, strategy="drop_oldest"),
        )
        assert cfg.store.backend == "sqlite"
        assert cfg.store.path == tmp_path.resolve() / "data" / "state.db"
        assert cfg.server.host == "0.0.0.0"
        assert cfg.server.port == 9000
        assert cfg.cors.origins == ("https://example.org",)
        assert cfg.cors.allow_methods == ("GET",)
        assert cfg.cors.allow_headers == CorsConfig().allow_headers
        assert cfg.cors.allow_credentials is False
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.colors is False

    def test_minimal_config(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text("")
        cfg = load_config(toml_file)
        assert cfg.actor == ActorConfig()
        assert cfg.store.path == tmp_path.resolve() / "greeter.db"

    def test_absolute_store_path_kept(self, tmp_path: Path) -> None:
        db = tmp_path / "elsewhere" / "g.db"
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text(f'[store]\npath = "{db.as_posix()}"\n')
        assert load_config(toml_file).store.path == db

    def test_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.toml")

    @pytest.mark.parametrize(
        "body",
        [
            '[actor]\nvariant = "chatty"\n',
            '[store]\nbackend = "redis"\n',
            '[actor.mailbox]\nstrategy = "reject"\n',
        ],
    )
    def test_unknown_choice_raises(self, tmp_path: Path, body: str) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text(body)
        with pytest.raises(ValueError):
            load_config(toml_file)

    @pytest.mark.parametrize(
        "body",
        [
            "[actor]\nsend_timeout = 5.0\nask_timeout = 5.0\n",
            "[actor]\nsend_timeout = 10\n",
        ],
    )
    def test_send_timeout_must_undercut_ask_timeout(self, tmp_path: Path, body: str) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text(body)
        with pytest.raises(ValueError, match="send_timeout"):
            load_config(toml_file)


class TestDiscoverConfig:
    def test_finds_in_cwd(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text('[system]\nname = "found-cwd"')
        assert discover_config(tmp_path) == toml_file.resolve()

    def test_walks_up(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text('[system]\nname = "found-parent"')
        child = tmp_path / "a" / "b" / "c"
        child.mkdir(parents=True)
        assert discover_config(child) == toml_file.resolve()

    def test_not_found_returns_none(self, tmp_path: Path) -> None:
        child = tmp_path / "isolated"
        child.mkdir()
        assert discover_config(child) is None

    def test_load_config_no_args_auto_discovery(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        toml_file = tmp_path / "greeter.toml"
        toml_file.write_text('[system]\nname = "auto-discovered"')
        monkeypatch.chdir(tmp_path)
        assert load_config().system_name == "auto-discovered"

    def test_load_config_no_args_no_file_returns_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config() == GreeterConfig()
