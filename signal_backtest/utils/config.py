"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 파라미터, 백테스트 파라미터, 데이터 소스, 로깅 설정 등을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    strategy:         → StrategyConfig (전략 이름, 종목, 전략 파라미터)
    backtest:         → BacktestConfig (기간, 초기 자금, 거래 비용)
    database:         → DatabaseConfig (ClickHouse 접속 정보)
    data_source:      → DataSourceConfig (Yahoo 접미사, 재시도)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - config.strategy_params()로 StrategyParams 생성
    - 엔진 생성 시 config.backtest의 값을 사용
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from signal_backtest.core.trading_strategy import StrategyParams


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    params에는 StrategyParams의 기본값 중 바꿀 값만 지정하면 된다.
    """
    name: str = "rsi_macd"
    tickers: list[str] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응."""
    start_date: str = "2024-01-01"
    end_date: str = "2024-12-31"
    initial_cash: float = 1_000_000
    buy_cost_rate: float = 0.001425   # 매수 수수료 0.1425%
    sell_cost_rate: float = 0.004425  # 매도 수수료 0.1425% + 거래세 0.3%
    min_order_amount: float = 10_000

    @property
    def start(self) -> date:
        return date.fromisoformat(str(self.start_date))

    @property
    def end(self) -> date:
        return date.fromisoformat(str(self.end_date))


@dataclass
class DatabaseConfig:
    """데이터베이스 설정. config.yaml의 database 섹션에 대응."""
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"
    use_adjusted_close: bool = True


@dataclass
class DataSourceConfig:
    """Yahoo Finance 조회 설정. config.yaml의 data_source 섹션에 대응."""
    symbol_suffix: str = ""
    max_retries: int = 3
    retry_delay: float = 5.0


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data_source: DataSourceConfig = field(default_factory=DataSourceConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        strategy_data = data.get("strategy") or {}

        # strategy 섹션 파싱: name, tickers는 직접 필드, 나머지는 모두 params로
        # params가 명시적으로 있으면 그것을 사용
        if "params" in strategy_data:
            strategy_params = dict(strategy_data["params"] or {})
        else:
            strategy_params = {
                k: v for k, v in strategy_data.items()
                if k not in ("name", "tickers")
            }
        strategy = StrategyConfig(
            name=strategy_data.get("name", "rsi_macd"),
            tickers=[str(t) for t in strategy_data.get("tickers") or []],
            params=strategy_params,
        )

        return cls(
            strategy=strategy,
            backtest=_section(BacktestConfig, data.get("backtest")),
            database=_section(DatabaseConfig, data.get("database")),
            data_source=_section(DataSourceConfig, data.get("data_source")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def strategy_params(self) -> StrategyParams:
        """strategy.params로 불변 StrategyParams 생성 (알 수 없는 키는 무시)."""
        return StrategyParams.from_dict(self.strategy.params)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)


def _section(cls, data: dict[str, Any] | None):
    """dataclass에 정의된 키만 골라 섹션 객체 생성."""
    return cls(**{
        k: v for k, v in (data or {}).items()
        if k in cls.__dataclass_fields__
    })
