"""Validated execution of the host commands the disk maker depends on."""

import subprocess
import logging
import shlex
from typing import List, Dict, Tuple
from enum import Enum
import re
from collections import deque


logger = logging.getLogger(__name__)


class CommandType(Enum):
    """Supported command types for validation."""
    LSBLK = "lsblk"


class SystemCommandExecutor:
    """Runs whitelisted host commands and keeps a history of what ran."""

    ALLOWED_COMMANDS = {
        CommandType.LSBLK: {
            'binary': 'lsblk',
            'allowed_args': {'--list', '--noheadings', '-o'},
        }
    }

    # Column lists passed to lsblk -o
    COLUMN_LIST_PATTERN = re.compile(r'^[A-Z][A-Z0-9:-]*(,[A-Z][A-Z0-9:-]*)*$')

    def __init__(self, dry_run: bool = False, timeout: int = 30, history_size: int = 100):
        """
        Initialize the SystemCommandExecutor.

        Args:
            dry_run: Recorded in the command history; read-only listing still runs
            timeout: Seconds to wait for a command before giving up
            history_size: Number of executed commands to remember
        """
        self.dry_run = dry_run
        self.timeout = timeout
        self._command_history = deque(maxlen=history_size)

    def execute_lsblk_command(self, columns: str = 'NAME,MOUNTPOINT') -> Tuple[bool, str, str]:
        """
        List block devices without a header, one per line.

        Args:
            columns: Comma separated lsblk column names

        Returns:
            Tuple of (success, stdout, stderr)
        """
        if not self._validate_columns(columns):
            raise ValueError(f"Invalid lsblk columns: {columns}")

        cmd_args = ['--list', '-o', columns, '--noheadings']
        return self._execute_command(CommandType.LSBLK, cmd_args)

    def _execute_command(self,
                        command_type: CommandType,
                        args: List[str]) -> Tuple[bool, str, str]:
        """
        Execute a validated command with proper logging and error handling.

        Args:
            command_type: Type of command to execute
            args: Command arguments

        Returns:
            Tuple of (success, stdout, stderr)
        """
        self._validate_command_args(command_type, args)

        full_command = [self.ALLOWED_COMMANDS[command_type]['binary']] + args

        command_str = ' '.join(shlex.quote(arg) for arg in full_command)
        logger.debug(f"Executing command: {command_str}")

        self._command_history.append({
            'command': command_str,
            'type': command_type.value,
            'dry_run': self.dry_run
        })

        # Listing is read-only, so it still runs in dry run mode.
        try:
            result = subprocess.run(
                full_command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False
            )

            success = result.returncode == 0

            if not success:
                logger.error(f"Command failed with return code {result.returncode}: {command_str}")
                logger.error(f"Error output: {result.stderr}")

            return success, result.stdout, result.stderr

        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out: {command_str}")
            return False, "", "Command timed out"

        except OSError as e:
            logger.error(f"Error executing command {command_str}: {e}")
            return False, "", str(e)

    def _validate_command_args(self, command_type: CommandType, args: List[str]) -> None:
        """
        Validate command arguments against allowed patterns.

        Args:
            command_type: Type of command
            args: Arguments to validate

        Raises:
            ValueError: If any argument is not allowed
        """
        allowed_args = self.ALLOWED_COMMANDS[command_type]['allowed_args']

        for index, arg in enumerate(args):
            if arg in allowed_args:
                continue

            # Value following an option flag
            if index > 0 and args[index - 1] == '-o' and self._validate_columns(arg):
                continue

            raise ValueError(f"Argument not allowed for {command_type.value}: {arg}")

    def _validate_columns(self, columns: str) -> bool:
        """Validate an lsblk column list."""
        return bool(self.COLUMN_LIST_PATTERN.match(columns))

    def get_command_history(self) -> List[Dict]:
        """Get the history of executed commands."""
        return list(self._command_history)

    def clear_command_history(self) -> None:
        """Clear the command history."""
        self._command_history.clear()
