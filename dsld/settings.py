from dataclasses import dataclass

import dacite
import yaml


MIN_SEEDING_INTERVAL = 5


@dataclass
class StationData:
    base_url: str
    username: str
    password: str
    destination: str | None = None
    # drop folder watched by the remote, used when uploads are refused
    watch_dir: str | None = None
    allow_self_signed: bool = False
    timeout: float = 20


@dataclass
class SeedingData:
    interval: int = 30
    max_tasks: int = 300


@dataclass
class Data:
    host: str
    port: int
    station: StationData
    log_path: str | None = None
    debug: bool = False
    # auto-stop seeding is disabled if absent
    seeding: SeedingData | None = None


def load_from_path(path: str) -> Data:
    with open(path, mode="r", encoding="utf-8") as fin:
        raw_data = yaml.safe_load(fin)
    return load_from_dict(raw_data)


def load_from_dict(raw_data: dict) -> Data:
    data = dacite.from_dict(
        Data, raw_data, config=dacite.Config(type_hooks={float: float})
    )
    if data.seeding and data.seeding.interval < MIN_SEEDING_INTERVAL:
        data.seeding.interval = MIN_SEEDING_INTERVAL
    return data
