"""
Tests for the PROJUDI command-line interface.
"""
import argparse
import json
import pytest
from unittest.mock import AsyncMock, patch

from tests.fixtures.projudi_fakes import FakePortalDriver, PNG_BYTES

CLI_MODULE = "projudi_scraper.infrastructure.cli.projudi_cli"
NUMERO = "00026885420248160136"


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point output and log directories at a temp dir."""
    monkeypatch.setenv("PROJUDI_OUTPUT_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PROJUDI_LOG_DIR", str(tmp_path / "logs"))
    return tmp_path


def _fake_service(driver=None):
    from projudi_scraper.application.projudi_consulta_service import ProjudiConsultaService
    return ProjudiConsultaService(driver=driver or FakePortalDriver(resposta_correta="AB12C"))


class TestCreateParser:
    """Tests for create_parser function."""

    def test_returns_argument_parser(self):
        """create_parser returns ArgumentParser."""
        from projudi_scraper.infrastructure.cli.projudi_cli import create_parser
        assert isinstance(create_parser(), argparse.ArgumentParser)

    def test_validar_command(self):
        """validar takes the case number."""
        from projudi_scraper.infrastructure.cli.projudi_cli import parse_args

        args = parse_args(["validar", NUMERO])

        assert args.command == "validar"
        assert args.numero == NUMERO

    def test_consultar_defaults(self):
        """consultar defaults to user 'cli' and no output file."""
        from projudi_scraper.infrastructure.cli.projudi_cli import parse_args

        args = parse_args(["consultar", NUMERO])

        assert args.command == "consultar"
        assert args.user == "cli"
        assert args.output is None
        assert args.captcha_file is None
        assert args.no_headless is False

    def test_consultar_options(self):
        """consultar accepts user, files and --no-headless."""
        from projudi_scraper.infrastructure.cli.projudi_cli import parse_args

        args = parse_args([
            "consultar", NUMERO,
            "--user", "advogado1",
            "--captcha-file", "c.png",
            "--output", "p.json",
            "--no-headless",
        ])

        assert args.user == "advogado1"
        assert args.captcha_file == "c.png"
        assert args.output == "p.json"
        assert args.no_headless is True

    def test_config_command(self):
        """config accepts --show."""
        from projudi_scraper.infrastructure.cli.projudi_cli import parse_args

        args = parse_args(["config", "--show"])

        assert args.command == "config"
        assert args.show is True

    def test_verbose_flag(self):
        """-v enables verbose output."""
        from projudi_scraper.infrastructure.cli.projudi_cli import parse_args
        assert parse_args(["-v", "config"]).verbose is True


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels(self, tmp_path):
        """verbose -> DEBUG, quiet -> WARNING, default -> INFO."""
        import logging
        from projudi_scraper.infrastructure.cli.projudi_cli import setup_logging

        assert setup_logging(verbose=True, log_dir=str(tmp_path)).level == logging.DEBUG
        assert setup_logging(quiet=True, log_dir=str(tmp_path)).level == logging.WARNING
        assert setup_logging(log_dir=str(tmp_path)).level == logging.INFO

    def test_creates_log_file(self, tmp_path):
        """A log file is created in log_dir."""
        from projudi_scraper.infrastructure.cli.projudi_cli import setup_logging

        setup_logging(log_dir=str(tmp_path / "logs"))

        assert list((tmp_path / "logs").glob("projudi_cli_*.log"))


class TestValidar:
    """Tests for the validar command."""

    @pytest.mark.asyncio
    async def test_valid_number(self, cli_env, capsys):
        """A valid number prints the canonical form and exits 0."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        code = await main_async(["validar", NUMERO])

        assert code == 0
        assert "0002688-54.2024.8.16.0136" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_invalid_number(self, cli_env):
        """An invalid number exits 2."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        assert await main_async(["validar", "123"]) == 2


class TestConsultar:
    """Tests for the consultar command."""

    @pytest.mark.asyncio
    async def test_full_consultation(self, cli_env, capsys):
        """Saves the CAPTCHA, reads the answer, prints and writes JSON."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        captcha_file = cli_env / "captcha.png"
        output = cli_env / "processo.json"

        with patch(f"{CLI_MODULE}.ProjudiConsultaService.from_config", return_value=_fake_service()), \
                patch(f"{CLI_MODULE}._ler_resposta", AsyncMock(return_value="AB12C")):
            code = await main_async([
                "consultar", NUMERO,
                "--captcha-file", str(captcha_file),
                "--output", str(output),
            ])

        assert code == 0
        assert captcha_file.read_bytes() == PNG_BYTES

        impresso = json.loads(capsys.readouterr().out)
        assert impresso["numero_processo"] == "0002688-54.2024.8.16.0136"
        assert impresso["comarca"] == "Maringá"

        salvo = json.loads(output.read_text(encoding="utf-8"))
        assert salvo == impresso

    @pytest.mark.asyncio
    async def test_default_captcha_path(self, cli_env):
        """Without --captcha-file, the image goes to the output dir."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        with patch(f"{CLI_MODULE}.ProjudiConsultaService.from_config", return_value=_fake_service()), \
                patch(f"{CLI_MODULE}._ler_resposta", AsyncMock(return_value="AB12C")):
            code = await main_async(["consultar", NUMERO])

        assert code == 0
        assert (cli_env / "data" / f"captcha_{NUMERO}.png").exists()

    @pytest.mark.asyncio
    async def test_wrong_captcha_exits_1(self, cli_env):
        """A rejected CAPTCHA exits 1."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        with patch(f"{CLI_MODULE}.ProjudiConsultaService.from_config", return_value=_fake_service()), \
                patch(f"{CLI_MODULE}._ler_resposta", AsyncMock(return_value="ERRADO")):
            code = await main_async(["consultar", NUMERO])

        assert code == 1

    @pytest.mark.asyncio
    async def test_invalid_number_exits_2(self, cli_env):
        """A malformed number exits 2 without prompting."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        prompt = AsyncMock(return_value="AB12C")
        with patch(f"{CLI_MODULE}.ProjudiConsultaService.from_config", return_value=_fake_service()), \
                patch(f"{CLI_MODULE}._ler_resposta", prompt):
            code = await main_async(["consultar", "123"])

        assert code == 2
        prompt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_headless_overrides_config(self, cli_env):
        """--no-headless reaches the service configuration."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        with patch(
            f"{CLI_MODULE}.ProjudiConsultaService.from_config",
            return_value=_fake_service(),
        ) as from_config, patch(f"{CLI_MODULE}._ler_resposta", AsyncMock(return_value="AB12C")):
            await main_async(["consultar", NUMERO, "--no-headless"])

        assert from_config.call_args.args[0].headless is False


class TestConfigAndDispatch:
    """Tests for config command and dispatch."""

    @pytest.mark.asyncio
    async def test_config_show(self, cli_env):
        """config --show exits 0."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async
        assert await main_async(["config", "--show"]) == 0

    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, cli_env, capsys):
        """No command prints help and exits 0."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main_async

        assert await main_async([]) == 0
        assert "projudi-consulta" in capsys.readouterr().out

    def test_main_runs_event_loop(self, cli_env):
        """main() wraps main_async in asyncio.run."""
        from projudi_scraper.infrastructure.cli.projudi_cli import main
        assert main(["validar", NUMERO]) == 0
