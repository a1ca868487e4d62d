"""Progress bar classes for tracking progress of chains."""

import abc
import sys
from timeit import default_timer as timer


def _format_time(total_seconds):
    """Format a time interval in seconds as a colon-delimited string [h:]m:s"""
    total_mins, seconds = divmod(int(total_seconds), 60)
    hours, mins = divmod(total_mins, 60)
    if hours != 0:
        return f'{hours:d}:{mins:02d}:{seconds:02d}'
    else:
        return f'{mins:02d}:{seconds:02d}'


def _update_stats_running_means(iter, means, new_vals):
    """Update dictionary of running statistics means with latest values."""
    if iter == 1:
        means.update({key: float(val) for key, val in new_vals.items()})
    else:
        for key, val in new_vals.items():
            means[key] += (float(val) - means[key]) / iter


class BaseProgressBar(abc.ABC):
    """Base class defining expected interface for progress bars."""

    def __init__(self, sequence, description):
        """
        Args:
            sequence (Sequence): Sequence to iterate over. Must be iterable AND
                have a defined length such that `len(sequence)` is valid.
            description (None or str): Description of task to prefix progress
                bar with.
        """
        self._sequence = sequence
        self._description = description
        self._n_iter = len(sequence)

    @property
    def n_iter(self):
        return self._n_iter

    def __iter__(self):
        for i, val in enumerate(self._sequence):
            iter_dict = {}
            yield val, iter_dict
            self.update(i + 1, iter_dict)

    def __len__(self):
        return self._n_iter

    @abc.abstractmethod
    def update(self, iter_count, iter_dict=None):
        """Update progress bar state.

        Args:
            iter_count (int): New value for iteration counter.
            iter_dict (None or Dict[str, float]): Dictionary of iteration
                statistics key-value pairs to use to update postfix stats.
        """

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class DummyProgressBar(BaseProgressBar):
    """Placeholder progress bar which does not display progress updates."""

    def update(self, iter_count, iter_dict=None):
        pass


class ProgressBar(BaseProgressBar):
    """Iterable object for tracking progress of an iterative task.

    Writes a single updating line to a text file (by default `sys.stdout`)
    showing the proportion of iterations completed, timing information and
    running means of any statistics recorded in the per-iteration dictionaries.
    """

    GLYPHS = ' ▏▎▍▌▋▊▉█'
    """Characters used to create string representation of progress bar."""

    def __init__(self, sequence, description=None, file=None, n_col=10,
                 min_refresh_time=0.25):
        """
        Args:
            sequence (Sequence): Sequence to iterate over. Must be iterable AND
                have a defined length such that `len(sequence)` is valid.
            description (None or str): Description of task to prefix progress
                bar with.
            file (None or File): File object to write updates to. Defaults to
                `sys.stdout` if `None`.
            n_col (int): Number of columns (characters) to use in string
                representation of progress bar.
            min_refresh_time (float): Minimum time in seconds between each
                refresh of progress bar display.
        """
        super().__init__(sequence, description)
        self._file = file if file is not None else sys.stdout
        self._n_col = n_col
        self._min_refresh_time = min_refresh_time
        self._last_string_length = 0
        self.reset()

    @property
    def counter(self):
        """Progress iteration count."""
        return self._counter

    @property
    def prop_complete(self):
        """Proportion complete (float value in [0, 1])."""
        return self._counter / self.n_iter

    @property
    def elapsed_time(self):
        """Elapsed time formatted as string."""
        return _format_time(self._elapsed_time)

    @property
    def est_remaining_time(self):
        """Estimated remaining time to completion formatted as string."""
        if self._counter == 0:
            return '?'
        rate = self._elapsed_time / self._counter
        return _format_time(rate * (self.n_iter - self._counter))

    @property
    def progress_bar(self):
        """Progress bar string."""
        n_filled = self.prop_complete * self._n_col
        n_block_filled = int(n_filled)
        partial = ''
        if n_block_filled < self._n_col:
            partial = self.GLYPHS[
                int((n_filled - n_block_filled) * (len(self.GLYPHS) - 1))]
        n_block_empty = self._n_col - n_block_filled - len(partial)
        return (
            f'|{self.GLYPHS[-1] * n_block_filled}{partial}'
            f'{self.GLYPHS[0] * n_block_empty}|')

    @property
    def stats(self):
        """Comma-delimited string list of statistic key=value pairs."""
        return ', '.join(f'{k}={v:#.3g}' for k, v in self._stats_dict.items())

    @property
    def prefix(self):
        """Text to prefix progress bar with."""
        return (
            f'{self._description + ": " if self._description else ""}'
            f'{self.prop_complete * 100:3.0f}%')

    @property
    def postfix(self):
        """Text to suffix progress bar with."""
        return (
            f'{self._counter}/{self.n_iter} '
            f'[{self.elapsed_time}<{self.est_remaining_time}'
            f'{", " + self.stats if self._stats_dict else ""}]')

    def reset(self):
        """Reset progress bar state."""
        self._counter = 0
        self._start_time = timer()
        self._elapsed_time = 0
        self._last_refresh_time = -float('inf')
        self._stats_dict = {}

    def update(self, iter_count, iter_dict=None):
        if iter_count == 0:
            self.reset()
        else:
            self._counter = iter_count
            if iter_dict:
                _update_stats_running_means(
                    iter_count, self._stats_dict, iter_dict)
            self._elapsed_time = timer() - self._start_time
        if iter_count == self.n_iter or (
                timer() - self._last_refresh_time > self._min_refresh_time):
            self.refresh()
            self._last_refresh_time = timer()

    def refresh(self):
        """Rewrite the current line of the output file with the progress bar."""
        string = str(self)
        self._file.write(f'\r{string: <{self._last_string_length}}')
        self._last_string_length = len(string)
        self._file.flush()

    def __str__(self):
        return f'{self.prefix}{self.progress_bar}{self.postfix}'

    def __repr__(self):
        return self.__str__()

    def __enter__(self):
        self.reset()
        return self

    def __exit__(self, *args):
        if self._counter != self.n_iter:
            self.refresh()
        self._file.write('\n')
        self._file.flush()
        return False
