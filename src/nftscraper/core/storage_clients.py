import abc
import pathlib

from nftscraper.core.data_clients import DataReader
from nftscraper.core.stats import StatsService


class StorageClient(abc.ABC):
    @abc.abstractmethod
    async def __aenter__(self):
        raise NotImplementedError

    @abc.abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        raise NotImplementedError


class StorageClientContext(abc.ABC):
    @abc.abstractmethod
    async def store(self, path: str, data_reader: DataReader, content_type: str):
        raise NotImplementedError


class DirectoryStorageContext(StorageClientContext):
    CHUNK_SIZE = 64 * 1024

    def __init__(self, root: pathlib.Path, stats_service: StatsService) -> None:
        self.__root = root
        self.__stats_service = stats_service

    async def store(self, path: str, data_reader: DataReader, content_type: str):
        target = (self.__root / path).resolve()
        if self.__root.resolve() not in target.parents:
            raise ValueError(f"Path {path} is outside of the storage directory")
        with self.__stats_service.ms_counter(DirectoryStorageClient.STAT_STORE_MS):
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as file:
                while chunk := await data_reader.read(self.CHUNK_SIZE):
                    file.write(chunk)
            self.__stats_service.increment(DirectoryStorageClient.STAT_STORE)


class DirectoryStorageClient(StorageClient):
    """Stores files below a root directory on the local file system"""

    STAT_STORE = "directory_store"
    STAT_STORE_MS = "directory_store_ms"

    def __init__(self, root: pathlib.Path, stats_service: StatsService) -> None:
        self.__root = root
        self.__stats_service = stats_service

    async def __aenter__(self):
        self.__root.mkdir(parents=True, exist_ok=True)
        return DirectoryStorageContext(self.__root, self.__stats_service)

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass
