"""
构建执行器

运行构建前命令、构建命令和构建后命令，并把子进程输出转换为进度事件。
"""

import os
import queue
import shlex
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Dict, Generator, IO, List, Optional, Tuple, Union

from ..config.schema import BuildConfig
from ..utils.logging import LogStage, debug, error, info, success, warning
from .build_context import (
    BuildError,
    BuildPhase,
    BuildPhaseError,
    BuildProgressEvent,
    BuildResult,
    BuildState,
    ProgressCallback,
)


STDOUT = "stdout"
STDERR = "stderr"

# 超时终止后等待管道关闭的时间（秒）
KILL_GRACE_PERIOD = 2.0

_PHASE_STAGES = {
    BuildPhase.PRE_BUILD: LogStage.PRE_BUILD,
    BuildPhase.BUILD: LogStage.BUILD,
    BuildPhase.POST_BUILD: LogStage.POST_BUILD,
}


def _pump(pipe: IO[str], name: str, sink: "queue.Queue[Tuple[str, Optional[str]]]") -> None:
    """读取子进程管道直到 EOF，结束时放入 None 作为结束标记"""
    try:
        for line in iter(pipe.readline, ''):
            sink.put((name, line))
    except (OSError, ValueError):
        pass  # 进程被终止时管道可能已关闭
    finally:
        sink.put((name, None))


class BuildExecutor:
    """构建执行器

    Args:
        project_root: 命令的工作目录
        env: 子进程环境变量，默认继承当前进程
        poll_interval: 等待输出时的轮询间隔（秒）
    """

    def __init__(
        self,
        project_root: Union[str, Path] = ".",
        env: Optional[Dict[str, str]] = None,
        poll_interval: float = 0.1,
    ):
        self.project_root = Path(project_root)
        self.env = env
        self.poll_interval = poll_interval

    def execute(self, config: BuildConfig, on_progress: Optional[ProgressCallback] = None) -> BuildResult:
        """执行完整的构建序列

        Raises:
            BuildPhaseError: 构建前或构建后命令失败
            BuildError: 没有可执行的构建命令
        """
        events = self.stream(config)
        while True:
            try:
                event = next(events)
            except StopIteration as stop:
                return stop.value
            if on_progress:
                on_progress(event)

    def stream(self, config: BuildConfig) -> Generator[BuildProgressEvent, None, BuildResult]:
        """按顺序产生构建进度事件，生成器的返回值为构建结果

        生成器只能消费一次。
        """
        command = config.build_command.strip()
        if not command:
            raise BuildError("没有可执行的构建命令")

        started = time.monotonic()

        if config.pre_build_commands:
            yield BuildProgressEvent(BuildPhase.PRE_BUILD, BuildState.RUNNING)
            failure = self._run_hooks(BuildPhase.PRE_BUILD, config.pre_build_commands, config)
            if failure:
                hook, exit_code = failure
                result = BuildResult(
                    success=False,
                    exit_code=None,
                    combined_output="",
                    command_used=command,
                    failed_phase=BuildPhase.PRE_BUILD,
                    duration=time.monotonic() - started,
                )
                raise BuildPhaseError(BuildPhase.PRE_BUILD, hook, exit_code, result)
            yield BuildProgressEvent(BuildPhase.PRE_BUILD, BuildState.COMPLETE)

        info(f"执行构建命令: {command}", stage=LogStage.BUILD)
        yield BuildProgressEvent(BuildPhase.BUILD, BuildState.RUNNING, command=command)

        try:
            process = self._spawn(
                command, config.use_shell, capture=True, new_session=bool(config.build_timeout)
            )
        except (OSError, ValueError) as e:
            message = f"无法启动构建命令: {e}"
            error(message, stage=LogStage.BUILD)
            yield BuildProgressEvent(BuildPhase.BUILD, BuildState.ERROR_CHUNK, text=message, command=command)
            yield BuildProgressEvent(BuildPhase.BUILD, BuildState.COMPLETE, command=command)
            return BuildResult(
                success=False,
                exit_code=None,
                combined_output=message,
                command_used=command,
                failed_phase=BuildPhase.BUILD,
                duration=time.monotonic() - started,
            )

        chunks: List[str] = []
        sink: "queue.Queue[Tuple[str, Optional[str]]]" = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(process.stdout, STDOUT, sink), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, STDERR, sink), daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + config.build_timeout if config.build_timeout else None
        timed_out = False
        open_streams = len(readers)

        while open_streams:
            if deadline is not None and time.monotonic() > deadline:
                if timed_out:
                    # 脱离进程组的后代进程仍持有管道
                    break
                timed_out = True
                warning(f"构建超时 ({config.build_timeout}s)，终止进程组", stage=LogStage.BUILD)
                self._kill(process)
                deadline = time.monotonic() + KILL_GRACE_PERIOD

            try:
                name, text = sink.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            if text is None:
                open_streams -= 1
                continue

            chunks.append(text)
            state = BuildState.OUTPUT_CHUNK if name == STDOUT else BuildState.ERROR_CHUNK
            yield BuildProgressEvent(BuildPhase.BUILD, state, text=text, command=command)

        exit_code = process.wait()
        for reader in readers:
            reader.join(timeout=KILL_GRACE_PERIOD if timed_out else None)

        if timed_out:
            chunks.append(f"\n构建超时：超过 {config.build_timeout} 秒\n")

        build_ok = exit_code == 0 and not timed_out
        yield BuildProgressEvent(BuildPhase.BUILD, BuildState.COMPLETE, command=command)

        combined_output = "".join(chunks)
        if build_ok:
            success(f"构建命令完成: {command}", stage=LogStage.BUILD)
        else:
            error(f"构建命令失败 (退出码 {exit_code}): {command}", stage=LogStage.BUILD)

        if build_ok and config.post_build_commands:
            yield BuildProgressEvent(BuildPhase.POST_BUILD, BuildState.RUNNING)
            failure = self._run_hooks(BuildPhase.POST_BUILD, config.post_build_commands, config)
            if failure:
                hook, hook_exit_code = failure
                result = BuildResult(
                    success=False,
                    exit_code=exit_code,
                    combined_output=combined_output,
                    command_used=command,
                    failed_phase=BuildPhase.POST_BUILD,
                    duration=time.monotonic() - started,
                )
                raise BuildPhaseError(BuildPhase.POST_BUILD, hook, hook_exit_code, result)
            yield BuildProgressEvent(BuildPhase.POST_BUILD, BuildState.COMPLETE)

        return BuildResult(
            success=build_ok,
            exit_code=exit_code,
            combined_output=combined_output,
            command_used=command,
            failed_phase=None if build_ok else BuildPhase.BUILD,
            duration=time.monotonic() - started,
        )

    def _run_hooks(
        self,
        phase: BuildPhase,
        commands: List[str],
        config: BuildConfig,
    ) -> Optional[Tuple[str, Optional[int]]]:
        """依次运行构建前/后命令，输出直接继承当前进程

        Returns:
            第一个失败的命令及其退出码；全部成功时返回 None
        """
        stage = _PHASE_STAGES[phase]
        for hook in commands:
            info(f"运行命令: {hook}", stage=stage)
            try:
                process = self._spawn(hook, config.use_shell, capture=False)
                exit_code = process.wait()
            except (OSError, ValueError) as e:
                error(f"无法启动命令 {hook}: {e}", stage=stage)
                return hook, None

            if exit_code != 0:
                error(f"命令失败 (退出码 {exit_code}): {hook}", stage=stage)
                return hook, exit_code

        debug(f"{len(commands)} 条命令执行完成", stage=stage)
        return None

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        """终止构建进程及其派生的整个进程组"""
        if os.name == "nt":
            process.kill()
            return
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass  # 进程组已全部退出

    def _spawn(
        self,
        command: str,
        use_shell: bool,
        capture: bool,
        new_session: bool = False,
    ) -> subprocess.Popen:
        """启动子进程

        未启用 use_shell 时命令按 shell 语法拆分为参数列表，不经过命令解释器。
        new_session 为 True 时子进程成为新进程组的组长，超时时可以整组终止。
        """
        args: Union[str, List[str]]
        if use_shell:
            args = command
        else:
            args = shlex.split(command)
            if not args:
                raise ValueError("命令为空")

        pipe = subprocess.PIPE if capture else None
        return subprocess.Popen(
            args,
            shell=use_shell,
            cwd=str(self.project_root),
            env=self.env if self.env is not None else os.environ.copy(),
            stdout=pipe,
            stderr=pipe,
            text=True,
            encoding='utf-8',
            errors='replace',
            bufsize=1,
            start_new_session=new_session and os.name != "nt",
        )
