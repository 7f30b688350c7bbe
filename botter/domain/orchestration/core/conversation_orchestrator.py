from typing import TypedDict, Annotated, List, Dict, Any, Optional, Literal
import json
import sys
import time

from langgraph.graph import StateGraph, END
from langgraph.graph.message import add_messages
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
import structlog

from botter.domain.context.context_manager import ContextManager
from botter.domain.context.state.session_locks import SessionLockManager
from botter.domain.errors import ConfigurationError, InvalidInputError
from botter.domain.models.conversation import TurnRequest
from botter.domain.models.messages import message_text, messages_to_contents
from botter.domain.models.tool import text_of
from botter.domain.tool.tool_registry import ToolRegistry
from botter.infrastructure.observability.logging import MetricsCollector, TurnLogger

logger = structlog.get_logger(__name__)

AWAITING_MODEL_RESPONSE = "awaiting_model_response"
DISPATCHING_TOOLS = "dispatching_tools"

WEB_SEARCH_TOOL = {"google_search": {}}


class TurnState(TypedDict):
    """State of the tool-resolution loop for one turn"""
    messages: Annotated[List[BaseMessage], add_messages]
    session_id: str
    tool_rounds: int


class ConversationOrchestrator:
    """Drives one conversation turn: context, model exchange, tool resolution, persistence"""

    def __init__(
        self,
        model: Any,
        context_manager: ContextManager,
        tool_registry: Optional[ToolRegistry] = None,
        web_search: bool = False,
        max_tool_rounds: Optional[int] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.tool_registry = tool_registry or ToolRegistry()
        if self.tool_registry.servers and web_search:
            raise ConfigurationError("tool servers and built-in web search cannot be enabled together")

        self.model = self._bind_tools(model, web_search)
        self.context_manager = context_manager
        self.max_tool_rounds = max_tool_rounds
        self.session_locks = SessionLockManager()
        self.turn_logger = TurnLogger(__name__)
        self.metrics = metrics or MetricsCollector()
        self.workflow = self._create_workflow()

    def _bind_tools(self, model: Any, web_search: bool) -> Any:
        """Advertise either the registry's tools or the built-in web search, never both"""

        if self.tool_registry.servers:
            declarations = self.tool_registry.declarations
            if not declarations:
                return model
            return model.bind_tools([declaration.to_function_schema() for declaration in declarations])

        if web_search:
            return model.bind_tools([WEB_SEARCH_TOOL])

        return model

    def _create_workflow(self):
        """Create the tool-resolution state machine"""

        workflow = StateGraph(TurnState)

        workflow.add_node(AWAITING_MODEL_RESPONSE, self.model_response_node)
        workflow.add_node(DISPATCHING_TOOLS, self.tool_dispatch_node)

        workflow.set_entry_point(AWAITING_MODEL_RESPONSE)

        workflow.add_conditional_edges(
            AWAITING_MODEL_RESPONSE,
            self.route_model_response,
            {
                "tool_calls": DISPATCHING_TOOLS,
                "final": END
            }
        )
        workflow.add_edge(DISPATCHING_TOOLS, AWAITING_MODEL_RESPONSE)

        return workflow.compile()

    async def model_response_node(self, state: TurnState) -> Dict[str, Any]:
        """Submit the exchange so far and record the model's response"""

        logger.info("Sending message", session_id=state["session_id"], tool_rounds=state["tool_rounds"])

        response = await self.model.ainvoke(state["messages"])
        return {"messages": [response]}

    def route_model_response(self, state: TurnState) -> Literal["tool_calls", "final"]:
        """Loop while the model keeps requesting tools"""

        last_message = state["messages"][-1]
        route = "tool_calls" if isinstance(last_message, AIMessage) and last_message.tool_calls else "final"

        self.turn_logger.log_workflow_transition(
            session_id=state["session_id"],
            from_node=AWAITING_MODEL_RESPONSE,
            to_node=DISPATCHING_TOOLS if route == "tool_calls" else "done",
            condition=route
        )
        return route

    async def tool_dispatch_node(self, state: TurnState) -> Dict[str, Any]:
        """Dispatch every tool call of the last response and collect the results"""

        session_id = state["session_id"]
        calls = state["messages"][-1].tool_calls
        logger.info("Function calls detected", session_id=session_id, calls=len(calls))

        results: List[ToolMessage] = []
        dispatched = set()
        for call in calls:
            call_id = call.get("id")
            if call_id:
                if call_id in dispatched:
                    logger.warning("Duplicate function call id skipped", call_id=call_id, function=call["name"])
                    continue
                dispatched.add(call_id)

            result = await self._dispatch_tool_call(session_id, call)
            if result is not None:
                results.append(result)

        return {"messages": results, "tool_rounds": state["tool_rounds"] + 1}

    async def _dispatch_tool_call(self, session_id: str, call: Dict[str, Any]) -> Optional[ToolMessage]:
        """Run one tool call; unresolvable or failing calls yield no result"""

        tool_name = call["name"]
        call_id = call.get("id")
        arguments = call.get("args") or {}

        logger.info("Initiating function call", call_id=call_id, function=tool_name, args=arguments)

        server = self.tool_registry.resolve(tool_name)
        if server is None:
            logger.error("Function call not found in tool registry", call_id=call_id, function=tool_name)
            self.metrics.increment_counter("tool_call.unresolved", tags={"tool": tool_name})
            return None

        start = time.perf_counter()
        try:
            outputs = await server.call_tool(tool_name, arguments, session_id)
        except Exception as exc:
            self.turn_logger.log_tool_execution(
                tool_name=tool_name,
                session_id=session_id,
                call_id=call_id,
                input_data=arguments,
                duration_ms=(time.perf_counter() - start) * 1000,
                success=False,
                error=str(exc)
            )
            self.metrics.increment_counter("tool_call.failed", tags={"tool": tool_name})
            return None

        duration_ms = (time.perf_counter() - start) * 1000
        output_text = text_of(outputs)

        self.turn_logger.log_tool_execution(
            tool_name=tool_name,
            session_id=session_id,
            call_id=call_id,
            input_data=arguments,
            output_text=output_text,
            duration_ms=duration_ms
        )
        self.metrics.record_latency("tool_call", duration_ms, tags={"tool": tool_name})

        return ToolMessage(
            content=json.dumps({"output": output_text}),
            tool_call_id=call_id or "",
            name=tool_name
        )

    def _recursion_limit(self) -> int:
        # One step for the first response, two per tool round, one more for the final transition
        if self.max_tool_rounds is None:
            return sys.maxsize
        return 2 * self.max_tool_rounds + 2

    async def handle_turn(self, session_id: str, request: TurnRequest) -> str:
        """Handle one user turn and return the model's final text"""

        if not session_id:
            raise InvalidInputError("session id is empty")

        async with self.session_locks.hold(session_id):
            with structlog.contextvars.bound_contextvars(session_id=session_id):
                return await self._run_turn(session_id, request)

    async def _run_turn(self, session_id: str, request: TurnRequest) -> str:
        start = time.perf_counter()
        self.turn_logger.log_turn_event(
            "turn_started",
            session_id,
            {"message": request.message, "has_attachment": request.attachment is not None}
        )

        context = await self.context_manager.build_context(session_id, request)

        initial_state: TurnState = {
            "messages": context.messages,
            "session_id": session_id,
            "tool_rounds": 0
        }
        final_state = await self.workflow.ainvoke(
            initial_state,
            config={"recursion_limit": self._recursion_limit()}
        )

        new_messages = final_state["messages"][len(context.messages):]
        transcript = context.history + [context.user_content] + messages_to_contents(new_messages)

        await self.context_manager.commit(session_id, transcript)

        duration_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_latency("turn", duration_ms)
        self.turn_logger.log_turn_event(
            "turn_completed",
            session_id,
            {"tool_rounds": final_state["tool_rounds"], "history_length": len(transcript)}
        )

        return message_text(final_state["messages"][-1])
