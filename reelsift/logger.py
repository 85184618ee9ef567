"""
Minimal logging context for reelsift.
Single place to control all output: screen + file, with flush.
"""
import json
import os
import re
from pathlib import Path
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.text import Text

from reelsift.__version__ import __version__

_TAG_STYLES = {
    "[INFO]": "cyan",
    "[WARNING]": "yellow",
    "[ERROR]": "red",
    "[DEBUG]": "grey50",
}
_TAG_RE = re.compile(r"\[(?:INFO|WARNING|ERROR|DEBUG)\]")
_OUTCOME_RE = re.compile(r"^\s+(?P<source>\S+)\s+(?P<state>ok|failed|timeout)\b")
_OUTCOME_STYLES = {"ok": "green", "failed": "red", "timeout": "red"}


class ReelsiftLogger:
    """Minimal logger: print to screen + file, always flush"""

    def __init__(self, log_file: Optional[Path] = None, debug: bool = False):
        self.log_file = log_file
        self._file_handle = None
        self._start_time = datetime.now()
        self.debug_mode = debug
        self._rate_limit_note_sources: set[str] = set()
        self._console = Console(highlight=False)
        self._status_width = 0

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_file, 'w', buffering=1, encoding='utf-8')  # Line buffered, UTF-8

        if self._file_handle or debug:
            self.log(f"({self._start_time.strftime('%H:%M:%S')}  Started reelsift {__version__})")

    def _screen_text(self, output: str) -> Text:
        """Style known tags without interpreting any other brackets as markup."""
        text = Text(output)
        for match in _TAG_RE.finditer(output):
            text.stylize(_TAG_STYLES[match.group(0)], match.start(), match.end())
        outcome = _OUTCOME_RE.match(output)
        if outcome:
            text.stylize("bold", outcome.start("source"), outcome.end("source"))
            state = outcome.group("state")
            text.stylize(_OUTCOME_STYLES[state], outcome.start("state"), outcome.end("state"))
        return text

    def _clear_status(self) -> None:
        if self._status_width:
            print("\r" + " " * self._status_width + "\r", end="", flush=True)
            self._status_width = 0

    def status(self, msg: str):
        """Inline progress line on screen only; replaced by the next status or log line"""
        padding = " " * max(self._status_width - len(msg), 0)
        print(f"\r{msg}{padding}", end="", flush=True)
        self._status_width = len(msg)

    def log(self, msg: str, prefix: str = ""):
        """Log to screen and file"""
        output = f"{prefix}{msg}" if prefix else msg

        self._clear_status()
        self._console.print(self._screen_text(output))

        if self._file_handle:
            self._file_handle.write(output + "\n")
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())

    def info(self, msg: str):
        """Info message"""
        self.log(msg)

    def warning(self, msg: str):
        """Warning message"""
        self.log(msg, "[WARNING] ")

    def error(self, msg: str):
        """Error message"""
        self.log(msg, "[ERROR] ")

    def api_wait(self, source: str, seconds: float):
        """Log request pacing once per source"""
        _ = seconds
        source_key = source.upper()
        if source_key in self._rate_limit_note_sources:
            return
        self._rate_limit_note_sources.add(source_key)
        self.log(
            f"Request pacing active for {source_key}; requests are being spaced out.",
            "[INFO] ",
        )

    def api_wait_debug(self, source: str, seconds: float):
        """Log pacing wait details (debug mode only)."""
        self.debug(f"Rate limiting detail: waiting {seconds:.3f}s before next {source} request")

    def api_retry(self, source: str, attempt: int, max_attempts: int, delay: int):
        """Log API retry"""
        self.log(f"{source} request failed. Retrying in {delay}s... (attempt {attempt}/{max_attempts})", "[WARNING] ")

    def api_failed(self, source: str, max_attempts: int):
        """Log API failure"""
        self.log(f"{source} not responding after {max_attempts} attempts. Giving up.", "[ERROR] ")

    def debug(self, msg: str):
        """Debug message (only shown in debug mode)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(msg, f"[{timestamp}] [DEBUG] ")

    def api_request(self, method: str, url: str, params: Optional[dict]):
        """Log API request (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Request: {method} {url}", f"[{timestamp}] ")
            if params:
                self.log(f"  Params: {json.dumps(params, indent=2)}", f"[{timestamp}] ")

    def api_response(self, status: int, data: object, elapsed_ms: float):
        """Log API response (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Response ({elapsed_ms:.0f}ms): Status {status}", f"[{timestamp}] ")
            if data:
                # Truncate large responses
                data_str = json.dumps(data, indent=2, default=str)
                if len(data_str) > 5000:
                    data_str = data_str[:5000] + "\n  ... (truncated)"
                self.log(f"  Data: {data_str}", f"[{timestamp}] ")

    def close(self):
        """Close file handle with goodbye message"""
        if self._file_handle:
            end_time = datetime.now()
            elapsed = end_time - self._start_time
            goodbye = f"({end_time.strftime('%H:%M:%S')}  Ended session, elapsed {elapsed.total_seconds():.1f}s)"
            self.log(goodbye)
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# Global instance (set by the CLI)
_logger: Optional[ReelsiftLogger] = None

def set_logger(logger: ReelsiftLogger):
    """Set global logger instance"""
    global _logger
    _logger = logger

def get_logger() -> ReelsiftLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        # Fallback: screen-only logger
        _logger = ReelsiftLogger()
    return _logger

# Convenience functions
def log(msg: str):
    get_logger().log(msg)

def info(msg: str):
    get_logger().info(msg)

def warning(msg: str):
    get_logger().warning(msg)

def error(msg: str):
    get_logger().error(msg)

def debug(msg: str):
    get_logger().debug(msg)
