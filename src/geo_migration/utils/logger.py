"""로깅 설정"""

import logging
import sys
from datetime import datetime
from pathlib import Path


def setup_logger(verbose: bool = False, log_dir: str | None = "./logs") -> logging.Logger:
    """애플리케이션 로거 설정

    모듈 로거(geo_migration.*)는 이 로거로 전파된다.
    log_dir가 None이면 파일 핸들러를 붙이지 않는다.
    """
    logger = logging.getLogger("geo_migration")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # 이미 핸들러가 설정되어 있으면 반환
    if logger.handlers:
        return logger

    # 콘솔 핸들러
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_format = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # 파일 핸들러
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_path / f"geo_migration_{datetime.now().strftime('%Y%m%d')}.log",
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(console_format)
        logger.addHandler(file_handler)

    return logger
