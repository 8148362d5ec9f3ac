import inspect
import time
from datetime import datetime, timezone
import os

import psutil
from rich import print as _print
from rich.markup import escape

# Log types hidden when the library runs quietly
_CHATTY_LOG_TYPES = {'DEBUG', 'INFO', 'STATE', 'PROGRESS'}
_quiet = False


def set_quiet(quiet: bool) -> None:
    """Suppress DEBUG/INFO/STATE/PROGRESS output when quiet is True."""
    global _quiet
    _quiet = bool(quiet)


def Print(logType: str, message: str) -> None:
    """
    Prints a log message with timestamp, function name, symbols wrapping the logType, and the message.
    """
    logTypeUpper = logType.upper()
    if _quiet and logTypeUpper in _CHATTY_LOG_TYPES:
        return

    try:
        # Mapping of logType to symbols
        logTypeSymbols = {
            'SUCCESS': ('^^^', '^^^'),
            'FAILURE': ('###', '###'),
            'STATE': ('~~~', '~~~'),
            'INFO': ('---', '---'),
            'IMPORTANT': ('===', '==='),
            'CRITICAL': ('***', '***'),
            'EXCEPTION': ('!!!', '!!!'),
            'WARNING': ('(((', ')))'),
            'DEBUG': ('[[[', ']]]'),
            'ATTEMPT': ('???', '???'),
            'STARTING': ('>>>', '>>>'),
            'PROGRESS': ('vvv', 'vvv'),
            'COMPLETED': ('<<<', '<<<'),
        }

        # Mapping of logType to styles
        logTypeStyles = {
            'SUCCESS': 'green',
            'FAILURE': 'red bold',
            'STATE': 'cyan',
            'INFO': 'blue',
            'IMPORTANT': 'magenta',
            'CRITICAL': 'red bold',
            'EXCEPTION': 'red bold',
            'WARNING': 'yellow',
            'DEBUG': 'white',
            'ATTEMPT': 'cyan',
            'STARTING': 'green',
            'PROGRESS': 'blue',
            'COMPLETED': 'green',
        }

        current_time = time.time()
        timestamp = datetime.fromtimestamp(current_time, tz=timezone.utc).isoformat(timespec='microseconds') + 'Z'

        before_symbol, after_symbol = logTypeSymbols.get(logTypeUpper, ('', ''))
        formattedLogType = f"{before_symbol} {logTypeUpper} {after_symbol}"

        style = logTypeStyles.get(logTypeUpper, '')
        if style:
            formattedLogType = f"[{style}]{formattedLogType}[/{style}]"

        # Name of the function that asked for the log line
        caller_frame = inspect.stack()[1]
        function_name = caller_frame.function
        if function_name == 'Print':
            caller_frame = inspect.stack()[2]
            function_name = caller_frame.function

        paddedFunctionName = function_name.ljust(32)

        # Engine output and paths may contain square brackets
        safe_message = escape(str(message))

        _print(f"{timestamp} {formattedLogType} {paddedFunctionName} {safe_message}")

    except Exception as e:
        print(f"Something went wrong when attempting to print.\nError: {e}")


def decode_stream(data: bytes) -> str:
    """Decode captured process output, replacing bytes that are not UTF-8."""
    if not data:
        return ""
    return data.decode('utf-8', errors='replace')


def CPU_and_Mem_usage() -> str:
    """
    Returns a string with the CPU usage and memory usage of the current process.
    """
    current_process = psutil.Process(os.getpid())
    cpu_usage = psutil.cpu_percent(interval=0.1)
    memory_info = current_process.memory_info()
    memory_usage_mb = memory_info.rss / (1024 ** 2)
    return f"CPU Usage: {cpu_usage}%, Process Memory Usage: {memory_usage_mb:.2f} MB"
