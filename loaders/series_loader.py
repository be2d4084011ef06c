"""
DICOM Series Loader

Reads a series of single-frame DICOM files (or in-memory buffers),
decodes them concurrently and assembles them into a Volume.
"""

from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union
import concurrent.futures
import logging
import threading
import time

from config import LoaderConfig, DEFAULT_LOADER
from core.base import BaseLoader
from core.errors import FormatError
from rendering.volume import Volume, VolumeAssembler
from .dicom_parser import DicomParser, Slice


SeriesSource = Union[str, Path, Sequence[Union[str, Path]], Mapping[str, bytes]]


class DicomSeriesLoader(BaseLoader):
    """
    Loader for one DICOM series.

    Each file is decoded independently; a corrupt or unreadable file is
    logged and left out without affecting the rest of the series. Slices
    are kept in input order before assembly, so the volume does not
    depend on which decode finishes first.
    """

    def __init__(
        self,
        config: LoaderConfig = DEFAULT_LOADER,
        parser: Optional[DicomParser] = None,
        assembler: Optional[VolumeAssembler] = None
    ):
        self.config = config
        self.parser = parser or DicomParser()
        self.assembler = assembler or VolumeAssembler()
        self._last_timing = None

    @property
    def last_timing(self) -> Optional[dict]:
        return self._last_timing

    def can_load(self, source: str) -> bool:
        """True for directories containing files and for existing files."""
        path = Path(source)
        if path.is_dir():
            return bool(self.find_files(path))
        return path.is_file()

    def find_files(self, directory: Union[str, Path]) -> List[Path]:
        """
        List the slice files of a directory.

        Files matching the configured patterns are preferred; when none
        match (DICOM files often have no extension) every regular file is
        returned.
        """
        directory = Path(directory)
        matches = set()
        for pattern in self.config.file_patterns:
            matches.update(p for p in directory.glob(pattern) if p.is_file())
        if not matches:
            matches = {p for p in directory.iterdir() if p.is_file() and not p.name.startswith('.')}
        return sorted(matches)

    def load(
        self,
        source: SeriesSource,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> Volume:
        """
        Load a series into a volume.

        Args:
            source: Directory, list of file paths, or mapping of name to bytes
            progress_callback: Optional callback(progress: 0.0-1.0) over decoding

        Returns:
            Assembled Volume

        Raises:
            FileNotFoundError: If a directory source does not exist
            NoValidSlicesError: If no file produced a usable slice
            UnsupportedLayoutError: If slices disagree on layout
        """
        start = time.perf_counter()
        slices = self.decode_all(source, progress_callback)
        decode_time = time.perf_counter() - start

        volume = self.assembler.assemble(slices)

        self._last_timing = {
            'decode': decode_time,
            'total': time.perf_counter() - start,
            'slices': len(slices),
        }
        logging.info(
            f"Loaded series: {len(slices)} slices decoded in {decode_time:.2f}s, "
            f"volume {volume.dimensions}"
        )
        return volume

    def decode_all(
        self,
        source: SeriesSource,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> List[Slice]:
        """
        Decode every item of a source concurrently.

        Returns:
            Decoded slices in input order, failures left out
        """
        tasks = self._collect_tasks(source)
        if not tasks:
            return []

        results: List[Optional[Slice]] = [None] * len(tasks)
        progress_lock = threading.Lock()
        completed = 0

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.max_workers or None) as executor:
            future_to_index = {
                executor.submit(self._decode_task, name, item): i
                for i, (name, item) in enumerate(tasks)
            }

            for future in concurrent.futures.as_completed(future_to_index):
                i = future_to_index[future]
                results[i] = future.result()

                with progress_lock:
                    completed += 1
                    if progress_callback is not None:
                        progress_callback(completed / len(tasks))

        slices = [s for s in results if s is not None]
        skipped = len(tasks) - len(slices)
        if skipped:
            logging.warning(f"{skipped} of {len(tasks)} files could not be decoded")
        return slices

    def _collect_tasks(self, source: SeriesSource) -> List[Tuple[str, Union[Path, bytes]]]:
        """Normalize a source into (name, path-or-bytes) pairs."""
        if isinstance(source, Mapping):
            return [(str(name), data) for name, data in source.items()]

        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Series source not found: {path}")
            paths = self.find_files(path) if path.is_dir() else [path]
        else:
            paths = [Path(p) for p in source]

        return [(p.name, p) for p in paths]

    def _decode_task(self, name: str, item: Union[Path, bytes]) -> Optional[Slice]:
        """Read and decode one item; failures are logged and yield None."""
        try:
            buffer = item.read_bytes() if isinstance(item, Path) else item
        except OSError as e:
            logging.warning(f"Could not read {name}: {e}")
            return None

        try:
            return self.parser.decode(buffer, source=name)
        except FormatError as e:
            logging.warning(f"Skipping {name}: {e}")
            return None
