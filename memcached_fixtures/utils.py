import os
import signal
import subprocess
import threading
from logging import getLogger

logger = getLogger(__name__)


class ProcessRunner:
    def __init__(self, cmd, name="subprocess"):
        self.cmd = list(cmd)
        self.name = name
        self.process = None
        self.log_forwarding_thread = None
        self.should_stop_forwarding = False

    @property
    def pid(self):
        if self.process is None:
            return None
        return self.process.pid

    def _forward_logs(self):
        """Forward subprocess output to the fixture logger in real-time."""
        if not self.process or not self.process.stdout:
            return

        try:
            for line in iter(self.process.stdout.readline, ''):
                if self.should_stop_forwarding:
                    break
                if line.strip():
                    logger.info(f"[{self.name}] {line.strip()}")
        except (OSError, ValueError) as e:
            if not self.should_stop_forwarding:
                logger.debug(f"Error forwarding logs for {self.name}: {e}")

    def run(self):
        """Start the subprocess and a daemon thread forwarding its output.

        Raises OSError when the executable cannot be started.
        """
        try:
            self.process = subprocess.Popen(
                self.cmd,
                env=os.environ.copy(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                universal_newlines=True,
                bufsize=1,
            )
        except OSError as e:
            logger.error(f"Failed to start process '{' '.join(self.cmd)}': {e}")
            raise

        logger.debug(f"Started process {self.process.pid}: {' '.join(self.cmd)}")

        self.should_stop_forwarding = False
        self.log_forwarding_thread = threading.Thread(
            target=self._forward_logs,
            daemon=True,
            name=f"LogForwarder-{self.process.pid}",
        )
        self.log_forwarding_thread.start()

    def is_alive(self):
        return self.process is not None and self.process.poll() is None

    def terminate(self):
        """Send SIGTERM without waiting. Returns False if the process is gone."""
        if self.process is None:
            return False
        try:
            self.process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            logger.debug(f"Process {self.process.pid} already exited")
            return False
        return True

    def wait_stopped(self, timeout=5.0):
        if self.process is None:
            return
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Process {self.process.pid} did not respond to SIGTERM, using SIGKILL"
            )
            self.process.kill()
            self.process.wait()

        self.should_stop_forwarding = True
        if self.log_forwarding_thread and self.log_forwarding_thread.is_alive():
            self.log_forwarding_thread.join(timeout=2.0)

    def stop(self, timeout=5.0):
        self.terminate()
        self.wait_stopped(timeout)


class ServerProcess(ProcessRunner):
    def __init__(self, path, port, bind_address, verbose=True):
        port_flag = "-vp" if verbose else "-p"
        super().__init__(
            [path, port_flag, str(port), "-l", bind_address],
            name=f"memcached {port}",
        )
        self.path = path
        self.port = port
        self.bind_address = bind_address
