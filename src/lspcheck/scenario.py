"""
The conformance scenario: a fixed sequence of LSP interactions, each
reported as [TEST]/[PASS]/[FAIL] lines on the console.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TextIO

from .jsonrpc import JSON
from .session import Session
from .util import debug, info


class ScenarioAssertionFailure(Exception):
    """A step's success condition was not met.  Not fatal."""


@dataclass(frozen=True)
class Fixture:
    """The documents and cursor positions the scenario works with."""

    document_uri: str
    language_id: str
    invalid_text: str
    valid_text: str
    # (line, character), zero-based
    completion_position: tuple[int, int]
    hover_position: tuple[int, int]
    root_uri: str = 'file:///tmp/test'


@dataclass
class StepResult:
    name: str
    passed: bool
    detail: str = ''


@dataclass
class ScenarioReport:
    steps: list[StepResult] = field(default_factory=list)

    @property
    def failures(self) -> list[StepResult]:
        return [s for s in self.steps if not s.passed]

    @property
    def passed(self) -> bool:
        return not self.failures


def _position(pos: tuple[int, int]) -> JSON:
    line, character = pos
    return {'line': line, 'character': character}


def _error_text(response: JSON) -> str:
    error = response.get('error')
    if isinstance(error, dict) and 'message' in error:
        return str(error['message'])
    return json.dumps(error)


class Scenario:
    """Drive SESSION through the conformance steps, in order."""

    def __init__(
        self,
        session: Session,
        fixture: Fixture,
        diagnostics_attempts: int = 5,
        out: Optional[TextIO] = None,
    ):
        self.session = session
        self.fixture = fixture
        self.diagnostics_attempts = diagnostics_attempts
        self.out = out if out is not None else sys.stdout
        self.completion_id: Optional[int] = None

    def say(self, tag: str, text: str) -> None:
        print(f"[{tag}] {text}", file=self.out, flush=True)

    def steps(self) -> list[tuple[str, Callable[[], Awaitable[Optional[str]]]]]:
        return [
            ('initialize', self.initialize),
            ('initialized', self.initialized),
            ('open-invalid', self.open_invalid),
            ('await-diagnostics', self.await_diagnostics),
            ('change-valid', self.change_valid),
            ('await-completion', self.await_completion),
            ('hover', self.hover),
            ('shutdown', self.shutdown),
        ]

    async def run(self) -> ScenarioReport:
        """
        Run every step.  Assertion failures are printed and recorded;
        transport and framing errors propagate and end the run.
        """
        report = ScenarioReport()
        for name, step in self.steps():
            debug(f"Step {name}")
            try:
                detail = await step()
            except ScenarioAssertionFailure as e:
                self.say('FAIL', str(e))
                report.steps.append(StepResult(name, False, str(e)))
                continue
            if detail is not None:
                self.say('PASS', detail)
            report.steps.append(StepResult(name, True, detail or ''))
        info(f"Scenario finished, {len(report.failures)} failed step(s)")
        return report

    async def initialize(self) -> Optional[str]:
        self.say('TEST', "Sending 'initialize'...")
        response = await self.session.request('initialize', {
            'processId': os.getpid(),
            'rootUri': self.fixture.root_uri,
            'capabilities': {},
        })
        if 'error' in response:
            raise ScenarioAssertionFailure(
                f"Server rejected initialize: {_error_text(response)}"
            )
        if not response.get('result'):
            raise ScenarioAssertionFailure(
                "Server Initialized. Capabilities received: false"
            )
        return "Server Initialized. Capabilities received: true"

    async def initialized(self) -> Optional[str]:
        await self.session.issue_notification('initialized', {})
        return None

    async def open_invalid(self) -> Optional[str]:
        self.say('TEST', "Sending 'textDocument/didOpen' with invalid code...")
        await self.session.issue_notification('textDocument/didOpen', {
            'textDocument': {
                'uri': self.fixture.document_uri,
                'languageId': self.fixture.language_id,
                'version': 1,
                'text': self.fixture.invalid_text,
            }
        })
        return None

    async def await_diagnostics(self) -> Optional[str]:
        self.say('TEST', "Waiting for diagnostics...")
        for attempt in range(1, self.diagnostics_attempts + 1):
            msg = await self.session.next_message()
            method = msg.get('method')
            if method == 'textDocument/publishDiagnostics':
                params = msg.get('params')
                diagnostics = params.get('diagnostics') if isinstance(params, dict) else None
                if isinstance(diagnostics, list) and diagnostics:
                    return f"Diagnostics received! Found {len(diagnostics)} errors."
            debug(f"Diagnostics attempt {attempt}: skipping {method}")
        raise ScenarioAssertionFailure("No diagnostics received for invalid code.")

    async def change_valid(self) -> Optional[str]:
        self.say('TEST', "Testing Autocomplete...")
        await self.session.issue_notification('textDocument/didChange', {
            'textDocument': {'uri': self.fixture.document_uri, 'version': 2},
            'contentChanges': [{'text': self.fixture.valid_text}],
        })
        self.completion_id = await self.session.issue_request('textDocument/completion', {
            'textDocument': {'uri': self.fixture.document_uri},
            'position': _position(self.fixture.completion_position),
        })
        return None

    async def await_completion(self) -> Optional[str]:
        if self.completion_id is None:
            raise ScenarioAssertionFailure("Completion failed: request was never sent")
        response = await self.session.wait_response(self.completion_id)
        if 'error' in response:
            raise ScenarioAssertionFailure(f"Completion failed: {_error_text(response)}")
        result = response.get('result')
        # Either CompletionItem[] or a CompletionList
        items = result.get('items') if isinstance(result, dict) else result
        if not isinstance(items, list):
            raise ScenarioAssertionFailure(
                f"Completion failed or unexpected result: {json.dumps(result)}"
            )
        return f"Completion successful. Items: {len(items)}"

    async def hover(self) -> Optional[str]:
        line, character = self.fixture.hover_position
        self.say('TEST', f"Testing Hover at line {line}, character {character}...")
        response = await self.session.request('textDocument/hover', {
            'textDocument': {'uri': self.fixture.document_uri},
            'position': _position(self.fixture.hover_position),
        })
        payload = response['error'] if 'error' in response else response.get('result')
        return f"Hover result received: {json.dumps(payload, ensure_ascii=False)}"

    async def shutdown(self) -> Optional[str]:
        self.say('TEST', "Shutting down...")
        await self.session.request('shutdown')
        await self.session.issue_notification('exit')
        return None
