"""
로깅 모듈.

[ 역할 ]
    백테스트 실행 로그를 파일 + 콘솔로 남긴다.
    파일에는 체결/대기 주문까지 상세히, 콘솔에는 요약 위주로 출력하도록
    핸들러별 레벨을 따로 지정할 수 있다.

[ 로거 이름 ]
    signal_backtest.backtest  - 엔진 루프, 체결, 미체결 주문
    signal_backtest.data      - 데이터 조회 / 재시도 / 제공자 대체
    signal_backtest.strategy  - 진입 거부 사유, 청산 시그널
    signal_backtest.indicators - 지표 계산 이상값
    signal_backtest.risk      - 포지션 크기 계산
    signal_backtest.cli       - 실행 스크립트

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/signal_backtest_20240601.log)

[ 호출하는 곳 ]
    - run_backtest.py, scripts/check_symbol_data.py에서 setup_logger() 호출
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

# yfinance / clickhouse_connect의 HTTP 로그는 백테스트 로그를 가린다
NOISY_LOGGERS = ("yfinance", "urllib3", "peewee", "clickhouse_connect")


def _to_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"알 수 없는 로그 레벨: {level}")
    return value


def log_file_path(name: str = "signal_backtest", log_dir: str = "logs") -> Path:
    """오늘 날짜의 로그 파일 경로."""
    today = datetime.now().strftime("%Y%m%d")
    return Path(log_dir) / f"{name}_{today}.log"


def setup_logger(
    name: str = "signal_backtest",
    level: str | int = "INFO",
    log_dir: str | None = "logs",
    console: bool = True,
    console_level: str | int | None = None,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    Args:
        name: 루트로 쓸 로거 이름 (하위 로거는 여기로 전파)
        level: 파일 핸들러 레벨
        log_dir: 로그 디렉토리. None이면 파일 로그를 남기지 않음
        console: 콘솔 출력 여부
        console_level: 콘솔 핸들러 레벨 (기본: level과 동일)

    Raises:
        ValueError: 알 수 없는 레벨 이름
    """
    file_level = _to_level(level)
    stream_level = _to_level(console_level) if console_level is not None else file_level

    logger = logging.getLogger(name)
    logger.setLevel(min(file_level, stream_level))
    logger.propagate = False

    # 재호출 시 핸들러 중복 등록 방지
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is not None:
        path = log_file_path(name, log_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(stream_level)
        console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(console_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
