#!/usr/bin/env python3
"""
Process Streamer
Runs the wallet-management shell scripts and relays their output live

Each run spawns one child process. Two reader threads (stdout, stderr) push
chunks onto a queue; ScriptRun.events() drains that queue as a lazy iterator
of StreamEvent, ending with exactly one 'exit' event. Within a pipe chunks
keep their order; stdout and stderr are not ordered relative to each other.

There is no timeout and no cancellation API: a script that never exits stays
in the RunRegistry for the lifetime of the server.
"""

import codecs
import logging
import os
import queue
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from nftcharm import config
from nftcharm.errors import ScriptExecutionError, SpawnError

logger = logging.getLogger(__name__)

STDOUT = 'stdout'
STDERR = 'stderr'
EXIT = 'exit'

_CHUNK_SIZE = 4096
_EOF = object()


@dataclass
class ScriptResult:
    """Terminal record of one script run"""
    code: int
    stdout: str = ''
    stderr: str = ''

    @property
    def success(self) -> bool:
        return self.code == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'success': self.success
        }


@dataclass
class StreamEvent:
    """One stdout/stderr chunk, or the exit of a run"""
    type: str
    script_id: str
    script: str
    data: Optional[str] = None
    result: Optional[ScriptResult] = None

    def to_message(self) -> Dict[str, Any]:
        """Wire format sent to live clients"""
        message = {'type': self.type, 'scriptId': self.script_id, 'script': self.script}
        if self.type == EXIT:
            message.update(self.result.to_dict())
        else:
            message['data'] = self.data
        return message


class RunRegistry:
    """Runs currently in flight, keyed by run id"""

    def __init__(self):
        self._runs: Dict[str, 'ScriptRun'] = {}
        self._lock = threading.Lock()
        self._counter = 0

    def next_id(self) -> str:
        """Millisecond timestamp plus a process-wide counter, never reused"""
        with self._lock:
            self._counter += 1
            return f"{int(time.time() * 1000)}-{self._counter}"

    def register(self, run: 'ScriptRun'):
        with self._lock:
            self._runs[run.run_id] = run

    def unregister(self, run_id: str) -> Optional['ScriptRun']:
        with self._lock:
            return self._runs.pop(run_id, None)

    def get(self, run_id: str) -> Optional['ScriptRun']:
        with self._lock:
            return self._runs.get(run_id)

    def active_ids(self) -> List[str]:
        with self._lock:
            return list(self._runs)

    def __contains__(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._runs

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)


class ScriptRun:
    """A spawned script and the output captured from it so far"""

    def __init__(self, run_id: str, script: str, args: Sequence[str],
                 process: subprocess.Popen, registry: RunRegistry):
        self.run_id = run_id
        self.script = script
        self.args = list(args)
        self.process = process
        self.registry = registry
        self.started_at = time.time()
        self.result: Optional[ScriptResult] = None
        self._stdout: List[str] = []
        self._stderr: List[str] = []
        self._consumed = False

    @property
    def stdout(self) -> str:
        return ''.join(self._stdout)

    @property
    def stderr(self) -> str:
        return ''.join(self._stderr)

    @property
    def code(self) -> Optional[int]:
        return self.result.code if self.result else None

    def _pump(self, pipe, kind: str, events: queue.Queue):
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        try:
            while True:
                chunk = pipe.read1(_CHUNK_SIZE)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    events.put((kind, text))
            tail = decoder.decode(b'', final=True)
            if tail:
                events.put((kind, tail))
        finally:
            pipe.close()
            events.put((kind, _EOF))

    def events(self) -> Iterator[StreamEvent]:
        """Yield output chunks as they arrive, then the exit event"""
        if self._consumed:
            raise RuntimeError(f"Events of run {self.run_id} were already consumed")
        self._consumed = True

        events: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=self._pump, args=(self.process.stdout, STDOUT, events),
                             daemon=True, name=f"ScriptRun-{self.run_id}-stdout"),
            threading.Thread(target=self._pump, args=(self.process.stderr, STDERR, events),
                             daemon=True, name=f"ScriptRun-{self.run_id}-stderr"),
        ]
        for reader in readers:
            reader.start()

        finished = False
        try:
            open_streams = len(readers)
            while open_streams:
                kind, text = events.get()
                if text is _EOF:
                    open_streams -= 1
                    continue
                (self._stdout if kind == STDOUT else self._stderr).append(text)
                yield StreamEvent(kind, self.run_id, self.script, data=text)

            code = self.process.wait()
            for reader in readers:
                reader.join()

            self.registry.unregister(self.run_id)
            self.result = ScriptResult(code, self.stdout, self.stderr)
            finished = True

            elapsed = time.time() - self.started_at
            if self.result.success:
                logger.info(f"✅ {self.script} [{self.run_id}] finished in {elapsed:.1f}s")
            else:
                logger.warning(f"❌ {self.script} [{self.run_id}] exited with code {code} after {elapsed:.1f}s")

            yield StreamEvent(EXIT, self.run_id, self.script, result=self.result)
        finally:
            if not finished:
                self._abort()

    def _abort(self):
        """Consumer stopped listening before the script exited: kill it"""
        if self.process.poll() is None:
            logger.warning(f"Killing {self.script} [{self.run_id}]: output no longer consumed")
            try:
                os.killpg(self.process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        self.process.wait()
        self.registry.unregister(self.run_id)


class ProcessStreamer:
    """Spawns scripts from the scripts directory and delivers their events"""

    def __init__(self, scripts_dir=None, channel=None, registry: RunRegistry = None, shell: str = None):
        self.scripts_dir = Path(scripts_dir or config.SCRIPTS_DIR)
        self.channel = channel
        self.registry = registry if registry is not None else RunRegistry()
        self.shell = shell or config.SCRIPT_SHELL
        self._stats = {
            'scripts_started': 0,
            'scripts_succeeded': 0,
            'scripts_failed': 0,
            'spawn_failures': 0
        }
        self._stats_lock = threading.Lock()

    def _count(self, key: str):
        with self._stats_lock:
            self._stats[key] += 1

    def script_path(self, script: str) -> Path:
        return self.scripts_dir / script

    def start(self, script: str, args: Sequence = (), stdin_data: str = None) -> ScriptRun:
        """Spawn a script; raises SpawnError without registering anything"""
        path = self.script_path(script)
        if not path.is_file():
            self._count('spawn_failures')
            logger.error(f"Script not found: {path}")
            raise SpawnError(f"Script not found: {path}", script=script)

        args = [str(a) for a in args]
        try:
            process = subprocess.Popen(
                [self.shell, str(path), *args],
                cwd=str(self.scripts_dir),
                stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True
            )
        except OSError as e:
            self._count('spawn_failures')
            logger.error(f"Failed to spawn {script}: {e}")
            raise SpawnError(f"Failed to spawn {script}: {e}", script=script) from e

        run = ScriptRun(self.registry.next_id(), script, args, process, self.registry)
        self.registry.register(run)
        self._count('scripts_started')
        logger.info(f"▶️  Started {script} [{run.run_id}] pid={process.pid} args={args}")

        if stdin_data is not None:
            try:
                process.stdin.write(stdin_data.encode())
                process.stdin.close()
            except BrokenPipeError:
                logger.debug(f"{script} [{run.run_id}] closed its input before reading it")

        return run

    def stream(self, script: str, args: Sequence = (), stdin_data: str = None) -> Iterator[StreamEvent]:
        """Lazy sequence of events for a fresh run"""
        return self.start(script, args, stdin_data).events()

    def _deliver(self, event: StreamEvent, recipient=None):
        if self.channel is None:
            return
        message = event.to_message()
        if recipient is not None:
            self.channel.send_to(recipient, message)
        else:
            self.channel.broadcast(message)

    def run(self, script: str, args: Sequence = (), recipient=None, stdin_data: str = None) -> ScriptResult:
        """Run to completion, relaying every event; raises on non-zero exit"""
        run = self.start(script, args, stdin_data)
        for event in run.events():
            self._deliver(event, recipient)

        result = run.result
        if not result.success:
            self._count('scripts_failed')
            raise ScriptExecutionError(result)
        self._count('scripts_succeeded')
        return result

    def run_with_input(self, script: str, args: Sequence, input_text: str, recipient=None) -> ScriptResult:
        """Run a script that prompts once, answering the prompt up front"""
        return self.run(script, args, recipient=recipient, stdin_data=input_text)

    def active_runs(self) -> List[str]:
        return self.registry.active_ids()

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats['active_runs'] = len(self.registry)
        return stats
