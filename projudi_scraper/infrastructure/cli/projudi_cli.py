"""
PROJUDI Consultation Command-Line Interface.

Provides commands for:
- validar: Validate and normalize a CNJ case number
- consultar: Run the two-phase CAPTCHA consultation interactively
- config: Show configuration
"""
import argparse
import asyncio
import base64
import json
import sys
import logging
from typing import Optional, List
from datetime import datetime
from pathlib import Path
from dataclasses import replace

from projudi_scraper.application.projudi_consulta_service import ProjudiConsultaService
from projudi_scraper.domain.projudi_errors import InvalidCaseNumberError, ProjudiError
from projudi_scraper.domain.projudi_value_objects import normalizar_numero_processo
from projudi_scraper.infrastructure.cli.projudi_config import ProjudiConfig
from projudi_scraper.infrastructure.logging.projudi_logger import (
    LogLevel,
    create_projudi_logger,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for PROJUDI CLI."""
    parser = argparse.ArgumentParser(
        prog="projudi-consulta",
        description="PROJUDI (TJPR) public case consultation with human-solved CAPTCHA",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s validar 00026885420248160136
  %(prog)s consultar 0002688-54.2024.8.16.0136
  %(prog)s consultar 00026885420248160136 --captcha-file captcha.png --output processo.json
  %(prog)s config --show
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Validar command
    validar_parser = subparsers.add_parser(
        "validar",
        help="Validate a CNJ case number",
    )
    validar_parser.add_argument(
        "numero",
        type=str,
        help="Case number, with or without punctuation",
    )

    # Consultar command
    consultar_parser = subparsers.add_parser(
        "consultar",
        help="Consult a case on PROJUDI",
        description="Capture the CAPTCHA, prompt for the answer and print the case data",
    )
    _add_consultar_arguments(consultar_parser)

    # Config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show configuration",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser


def _add_consultar_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the consultar command."""
    parser.add_argument(
        "numero",
        type=str,
        help="Case number, with or without punctuation",
    )

    parser.add_argument(
        "--user",
        type=str,
        default="cli",
        help="User id for quota accounting (default: cli)",
    )

    parser.add_argument(
        "--captcha-file",
        type=str,
        help="Where to save the CAPTCHA image (default: <output-dir>/captcha_<digits>.png)",
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Also write the case JSON to this file",
    )

    # Browser options
    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Run browser in visible mode (for debugging)",
    )


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = create_parser()
    return parser.parse_args(args)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_dir: str = "projudi_logs",
) -> logging.Logger:
    """Configure logging for CLI."""
    log_level = logging.DEBUG if verbose else (logging.WARNING if quiet else logging.INFO)

    # Create log directory
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("projudi_scraper")
    logger.setLevel(log_level)

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_format = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # File handler
    log_file = Path(log_dir) / f"projudi_cli_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_format = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file_handler.setFormatter(file_format)
    logger.addHandler(file_handler)

    return logger


def _salvar_captcha(data_uri: str, destino: Path) -> Path:
    """Decode the CAPTCHA data URI and write the PNG."""
    _, _, conteudo = data_uri.partition(",")
    destino.parent.mkdir(parents=True, exist_ok=True)
    destino.write_bytes(base64.b64decode(conteudo))
    return destino


async def _ler_resposta(prompt: str) -> str:
    # input() would block the event loop
    return await asyncio.to_thread(input, prompt)


async def run_validar(
    args: argparse.Namespace,
    config: ProjudiConfig,
    logger: logging.Logger,
) -> int:
    """Execute the validar command."""
    try:
        numero = normalizar_numero_processo(args.numero)
    except InvalidCaseNumberError as e:
        logger.error(str(e))
        return EXIT_INVALID_INPUT

    print(numero)
    return EXIT_OK


async def run_consultar(
    args: argparse.Namespace,
    config: ProjudiConfig,
    logger: logging.Logger,
) -> int:
    """Execute the consultar command."""
    if args.no_headless:
        config = replace(config, headless=False)

    config.ensure_directories()

    service_logger = create_projudi_logger(
        "consulta",
        json_output=config.log_json,
        log_dir=config.log_dir,
        level=LogLevel.DEBUG if args.verbose else LogLevel(config.log_level.upper()),
    )

    try:
        async with ProjudiConsultaService.from_config(config, logger=service_logger) as service:
            inicio = await service.iniciar_consulta(args.numero, args.user)

            digitos = inicio.numero_processo.replace("-", "").replace(".", "")
            destino = Path(args.captcha_file or Path(config.output_dir) / f"captcha_{digitos}.png")
            _salvar_captcha(inicio.captcha_image, destino)
            logger.info(f"CAPTCHA salvo em {destino}")

            resposta = await _ler_resposta(f"Resposta do CAPTCHA ({destino}): ")
            dados = await service.consultar_com_captcha(inicio.session_id, resposta, args.user)
    except InvalidCaseNumberError as e:
        logger.error(str(e))
        return EXIT_INVALID_INPUT
    except ProjudiError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_ERROR

    saida = json.dumps(dados.to_dict(), ensure_ascii=False, indent=2)
    print(saida)

    if args.output:
        Path(args.output).write_text(saida, encoding="utf-8")
        logger.info(f"Resultado salvo em {args.output}")

    return EXIT_OK


async def run_config(
    args: argparse.Namespace,
    config: ProjudiConfig,
    logger: logging.Logger,
) -> int:
    """Execute the config command."""
    if args.show:
        logger.info("Configuração atual:")
        for key, value in config.to_dict().items():
            logger.info(f"  {key}: {value}")
    else:
        logger.info("Use --show para ver a configuração atual")

    return EXIT_OK


async def main_async(args: Optional[List[str]] = None) -> int:
    """Async main entry point."""
    parsed_args = parse_args(args)

    if not parsed_args.command:
        create_parser().print_help()
        return EXIT_OK

    # Load configuration
    config = ProjudiConfig.from_env()

    # Setup logging
    logger = setup_logging(
        verbose=parsed_args.verbose,
        quiet=parsed_args.quiet,
        log_dir=config.log_dir,
    )

    # Dispatch to command handler
    command_handlers = {
        "validar": run_validar,
        "consultar": run_consultar,
        "config": run_config,
    }

    handler = command_handlers.get(parsed_args.command)

    if handler:
        return await handler(parsed_args, config, logger)
    else:
        logger.error(f"Comando desconhecido: {parsed_args.command}")
        return EXIT_ERROR


def main(args: Optional[List[str]] = None) -> int:
    """Synchronous main entry point."""
    return asyncio.run(main_async(args))


if __name__ == "__main__":
    sys.exit(main())
