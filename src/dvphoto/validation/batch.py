"""Running many validations at once.

Each validation owns its decoded image and produces an independent result, so
they can run on worker threads without locks. The pool is capped (3 by
default) because decoding and convolution are CPU-heavy.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from dvphoto.core.config import ValidationConfig
from dvphoto.core.errors import PhotoPipelineError, ValidationTimeoutError
from dvphoto.detection.base import FaceLocator, build_locator
from dvphoto.validation.report import ValidationResult
from dvphoto.validation.validator import validate_bytes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    data: bytes
    extension: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "BatchItem":
        p = Path(path)
        return cls(data=p.read_bytes(), extension=p.suffix or None, label=str(p))


@dataclass(frozen=True)
class BatchOutcome:
    label: Optional[str]
    result: Optional[ValidationResult] = None
    error: Optional[PhotoPipelineError] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.result is not None


def validate_with_timeout(
    data: bytes,
    extension: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
    locator: Optional[FaceLocator] = None,
    image_path: Optional[str] = None,
) -> ValidationResult:
    """
    Validate on a worker thread, giving up after `config.timeout_seconds`.

    The abandoned run is left to finish in the background; its result is discarded.

    Raises:
      ValidationTimeoutError: the run did not finish in time.
      FormatError / UnsupportedFormatError: as validate_bytes.
    """
    config = config or ValidationConfig()
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(validate_bytes, data, extension, config, locator, image_path)
        try:
            return future.result(timeout=config.timeout_seconds)
        except concurrent.futures.TimeoutError:
            raise ValidationTimeoutError(config.timeout_seconds, image_path) from None
    finally:
        executor.shutdown(wait=False)


class BatchValidator:
    """
    Validate many photos with bounded concurrency.

    A run that takes longer than `config.timeout_seconds` is abandoned, counts as
    failed and is retried once; the validation itself never retries.
    """

    def __init__(
        self,
        config: Optional[ValidationConfig] = None,
        locator: Optional[FaceLocator] = None,
        retries: int = 1,
    ):
        self.config = config or ValidationConfig()
        self.locator = locator or build_locator()
        self.retries = retries

    def _run_one(self, item: BatchItem) -> ValidationResult:
        # The pool slot is released once the time budget runs out; the abandoned
        # run finishes on its own thread and its result is dropped.
        return validate_with_timeout(
            item.data,
            extension=item.extension,
            config=self.config,
            locator=self.locator,
            image_path=item.label,
        )

    def run(self, items: Iterable[BatchItem]) -> List[BatchOutcome]:
        """Validate `items`; outcomes are returned in input order."""
        items = list(items)
        outcomes: List[Optional[BatchOutcome]] = [None] * len(items)
        pending = list(range(len(items)))
        attempt = 0

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.max_concurrency) as pool:
            while pending:
                attempt += 1
                futures = {i: pool.submit(self._run_one, items[i]) for i in pending}
                retry: List[int] = []
                for i, future in futures.items():
                    label = items[i].label
                    try:
                        outcomes[i] = BatchOutcome(label=label, result=future.result(), attempts=attempt)
                    except ValidationTimeoutError as e:
                        if attempt <= self.retries:
                            logger.warning("Validation of %s timed out; retrying", label or f"item {i}")
                            retry.append(i)
                        else:
                            logger.warning("Validation of %s timed out after %d attempts", label or f"item {i}", attempt)
                            outcomes[i] = BatchOutcome(label=label, error=e, attempts=attempt)
                    except PhotoPipelineError as e:
                        logger.warning("Validation of %s failed: %s", label or f"item {i}", e)
                        outcomes[i] = BatchOutcome(label=label, error=e, attempts=attempt)
                pending = retry

        return [o for o in outcomes if o is not None]

    def run_paths(self, paths: Sequence[Union[str, Path]]) -> List[BatchOutcome]:
        return self.run(BatchItem.from_path(p) for p in paths)
