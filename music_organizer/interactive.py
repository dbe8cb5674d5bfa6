"""Interactive user prompts, console output and progress reporting."""

import logging
import os
import shlex
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from typing import List, Optional

import progressbar

from music_organizer.models import ProcessingStats


class Progress:
    """Handle for an active progress bar."""

    def __init__(self, bar: progressbar.ProgressBar):
        self.bar = bar
        self.value = 0
        self.message = ""

    def _max(self):
        return self.bar.max_value

    def _redraw(self):
        max_value = self._max()
        if max_value is not progressbar.UnknownLength and max_value is not None:
            self.value = min(self.value, max_value)
        self.bar.update(self.value, message=self.message, force=True)

    def inc(self, n: int = 1) -> None:
        self.value += n
        self._redraw()

    def set_length(self, n: int) -> None:
        """Set the total, once known (e.g. from a Content-Length header)."""
        self.bar.max_value = max(n, 1)
        self._redraw()

    def set_message(self, text: str) -> None:
        self.message = text
        self._redraw()


class _NullProgress:
    """Progress handle used in quiet mode."""

    def inc(self, n: int = 1) -> None:
        pass

    def set_length(self, n: int) -> None:
        pass

    def set_message(self, text: str) -> None:
        pass


class InteractivePrompts:
    """Handles user interaction, confirmations and all terminal output."""

    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "red": "\033[91m",
        "cyan": "\033[96m",
        "dim": "\033[2m",
    }

    def __init__(self, no_color: bool = False, auto_yes: bool = False,
                 quiet: bool = False, editor: str = "vi"):
        """
        Initialize interactive prompts.

        Args:
            no_color: Disable colored output
            auto_yes: Answer every question with its default
            quiet: Suppress non-essential output
            editor: Command used to edit the change list
        """
        self.no_color = no_color
        self.auto_yes = auto_yes
        self.quiet = quiet
        self.editor = editor
        self._active_bar: Optional[progressbar.ProgressBar] = None

        if no_color:
            self.COLORS = {k: "" for k in self.COLORS}

    def _c(self, color: str, text: str) -> str:
        """Apply color to text."""
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def styled(self, color: str, text: str) -> str:
        """Color text for output built outside this class."""
        return self._c(color, text)

    def print(self, *args, **kwargs):
        """Print unless quiet mode, keeping an active progress bar intact."""
        if self.quiet:
            return
        self._print_above_bar(*args, **kwargs)

    def _print_above_bar(self, *args, **kwargs):
        bar = self._active_bar
        if bar is not None:
            bar.fd.write("\r\033[K")
            bar.fd.flush()
        print(*args, **kwargs)
        if bar is not None:
            bar.update(force=True)

    def warn(self, text: str) -> None:
        self.print(self._c("yellow", text))

    def error(self, text: str) -> None:
        """Errors are printed even in quiet mode."""
        self._print_above_bar(self._c("red", text), file=sys.stderr)

    def confirm(self, prompt: str, default: bool = True) -> bool:
        """
        Ask a yes/no question.

        Args:
            prompt: Question to display
            default: Answer for an empty reply (and in auto-yes mode)

        Returns:
            True if confirmed
        """
        if self.auto_yes:
            return default

        hint = "[Y/n]" if default else "[y/N]"
        while True:
            choice = input(f"{self._c('bold', f'{prompt} {hint}: ')} ").strip().lower()
            if not choice:
                return default
            if choice in ("y", "yes"):
                return True
            if choice in ("n", "no"):
                return False

            print(self._c("red", "Invalid choice. Enter y or n."))

    def ask_text(self, prompt: str) -> Optional[str]:
        """Ask for free text; None when nothing was entered."""
        if self.auto_yes:
            return None

        value = input(f"{self._c('bold', f'{prompt}: ')} ").strip()
        return value or None

    def select(self, prompt: str, options: List[str], default: int = 0) -> int:
        """
        Let the user pick one of several options.

        Returns:
            Index of the selected option
        """
        if self.auto_yes:
            return default

        print(f"\n{self._c('cyan', prompt)}")
        for i, option in enumerate(options, 1):
            print(f"  [{i}] {option}")

        while True:
            choice = input(
                f"\n{self._c('bold', f'Select option [1-{len(options)}] ({default + 1}): ')} "
            ).strip()

            if not choice:
                return default
            try:
                idx = int(choice)
                if 1 <= idx <= len(options):
                    return idx - 1
            except ValueError:
                pass

            print(self._c("red", "Invalid selection. Try again."))

    def edit_text(self, text: str) -> Optional[str]:
        """
        Open the configured editor on a temporary copy of text.

        Returns:
            Edited text, or None if the editor failed or auto-yes mode is on
        """
        if self.auto_yes:
            return None

        fd, path = tempfile.mkstemp(suffix=".txt", prefix="music-organizer-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)

            return_code = subprocess.call(shlex.split(self.editor) + [path])
            if return_code != 0:
                self.error(f"Editor exited with status {return_code}")
                return None

            with open(path, encoding="utf-8") as f:
                return f.read()
        finally:
            os.remove(path)

    @contextmanager
    def progress(self, total: Optional[int] = None):
        """
        Show a progress bar for the duration of the block.

        Args:
            total: Number of units, or None when not known yet

        Yields:
            Progress handle
        """
        if self.quiet:
            yield _NullProgress()
            return

        if total is None:
            widgets = [
                progressbar.Variable("message", format="{formatted_value}"), " ",
                progressbar.AnimatedMarker(),
            ]
            max_value = progressbar.UnknownLength
        else:
            widgets = [
                progressbar.Variable("message", format="{formatted_value}"), " ",
                progressbar.Bar("=", "[", "]"), " ", progressbar.Percentage(),
            ]
            max_value = max(total, 1)

        bar = progressbar.ProgressBar(max_value=max_value, widgets=widgets,
                                      max_error=False)
        bar.start()
        previous = self._active_bar
        self._active_bar = bar
        try:
            yield Progress(bar)
        finally:
            self._active_bar = previous
            bar.finish()

    def show_summary(self, stats: ProcessingStats) -> None:
        """Display final processing summary."""
        self.print(f"\n{self._c('bold', '=' * 60)}")
        self.print(f"{self._c('bold', 'Processing Summary')}")
        self.print("=" * 60)

        self.print(f"Files found:         {stats.total_files}")
        self.print(f"Releases matched:    {self._c('green', str(stats.releases_matched))}")
        self.print(f"Folders unmatched:   {stats.folders_unmatched}")
        self.print(f"Files written:       {self._c('green', str(stats.files_written))}")
        self.print(f"Covers downloaded:   {stats.covers_downloaded}")
        self.print(f"Paths removed:       {stats.paths_removed}")
        if stats.chunks_skipped:
            self.print(f"Chunks skipped:      {self._c('yellow', str(stats.chunks_skipped))}")


class ConsoleLogHandler(logging.Handler):
    """Logging handler that writes through InteractivePrompts."""

    def __init__(self, prompts: InteractivePrompts):
        super().__init__()
        self.prompts = prompts

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                self.prompts.error(message)
            elif record.levelno >= logging.WARNING:
                self.prompts.warn(message)
            else:
                self.prompts.print(message)
        except Exception:
            self.handleError(record)
