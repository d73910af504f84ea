from tqdm import tqdm

from bsc_events.range_fetcher import ProgressState


class ProgressBar:
    """
    Console progress for RangeFetcher: blocks processed out of the total
    span, items accumulated so far and the last error seen.
    """

    def __init__(self, item_label: str = "events", **tqdm_kwargs):
        self.item_label = item_label
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, state: ProgressState):
        if self._bar is None:
            kwargs = {"unit": "blk", "dynamic_ncols": True, **self._tqdm_kwargs}
            self._bar = tqdm(total=state.total, **kwargs)

        self._bar.set_postfix(
            {self.item_label: state.accumulated_count, "lastError": state.last_error or "N/A"},
            refresh=False,
        )
        self._bar.update(state.processed - self._bar.n)

    def close(self):
        if self._bar is not None:
            self._bar.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
