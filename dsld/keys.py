from aiohttp.web import AppKey

from .settings import Data
from .station import SeedingSweeper, TaskSnapshotReader, TaskSubmitter


CONTEXT = AppKey("CONTEXT", Data)
SUBMITTER = AppKey("SUBMITTER", TaskSubmitter)
READER = AppKey("READER", TaskSnapshotReader)
SWEEPER = AppKey("SWEEPER", SeedingSweeper)
