"""Configuration du système de logging centralisé."""

import glob
import logging
import logging.handlers
import os
from datetime import datetime, timedelta
from pathlib import Path

from rich.logging import RichHandler

from skill_challenges.core.settings import Settings

ROOT_LOGGER_NAME = "skill_challenges"


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure le logger du package avec rotation quotidienne.

    Description:
        Attache au logger `skill_challenges` (parent de tous les `logging.getLogger(__name__)`
        du package) :
        - `generic.log` (INFO+), rotation à minuit
        - `errors.log` (ERROR+), rotation à minuit
        - une sortie console Rich en développement

        Idempotent : un second appel ne duplique pas les handlers.

    Args:
        settings (Settings): Configuration (dossier de logs, rétention, environnement).

    Returns:
        logging.Logger: Logger racine du package.
    """
    logs_dir = Path(settings.log_dir)
    logs_dir.mkdir(exist_ok=True)

    # Nettoyage des logs anciens
    cleanup_old_logs(logs_dir, retention_days=settings.log_retention_days)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.INFO)

    if root_logger.handlers:  # Éviter les doublons
        return root_logger

    generic_handler = logging.handlers.TimedRotatingFileHandler(
        filename=logs_dir / "generic.log",
        when="midnight",
        interval=1,
        encoding="utf-8"
    )
    generic_handler.suffix = "%Y-%m-%d"
    generic_handler.setLevel(logging.INFO)
    generic_handler.setFormatter(formatter)
    root_logger.addHandler(generic_handler)

    error_handler = logging.handlers.TimedRotatingFileHandler(
        filename=logs_dir / "errors.log",
        when="midnight",
        interval=1,
        encoding="utf-8"
    )
    error_handler.suffix = "%Y-%m-%d"
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    root_logger.addHandler(error_handler)

    if settings.is_development:
        root_logger.addHandler(RichHandler(rich_tracebacks=True, show_path=False))

    return root_logger


def cleanup_old_logs(logs_dir: Path, retention_days: int = 30) -> None:
    """Supprime les logs tournés plus anciens que retention_days."""
    cutoff_str = (datetime.now() - timedelta(days=retention_days)).strftime("%Y-%m-%d")

    patterns = [
        f"{logs_dir}/generic.log.*",
        f"{logs_dir}/errors.log.*",
    ]

    for pattern in patterns:
        for file_path in glob.glob(pattern):
            # suffixe ajouté par TimedRotatingFileHandler : .YYYY-MM-DD
            date_part = os.path.basename(file_path).rsplit(".", 1)[-1]
            if len(date_part) == 10 and date_part.count("-") == 2 and date_part < cutoff_str:
                try:
                    os.remove(file_path)
                except OSError:
                    continue
