import pytest
import pytest_asyncio

from tmux_squad.squad.panes import PaneAllocator
from tmux_squad.squad.tools import AgentToolError
from tmux_squad.squad.tools import AgentToolFactory
from tmux_squad.squad.tools import escape_message
from tmux_squad.tmux import FakeTmuxAdapter


@pytest_asyncio.fixture()
async def squad_tools(make_squad):
    fake = FakeTmuxAdapter()
    allocator = PaneAllocator("squad", fake)
    await allocator.create_layout(make_squad("manager", "tester"))
    return AgentToolFactory(allocator), fake


def test_escape_message() -> None:
    assert escape_message("it's done") == "it'\"'\"'s done"
    assert escape_message("line one\nline two") == "line one\\nline two"
    assert escape_message("plain") == "plain"


@pytest.mark.asyncio
async def test_send_message_reaches_target_pane(squad_tools) -> None:
    factory, fake = squad_tools

    result = await factory.send_message("tester", "it's ready\nplease review")

    assert result.success is True
    assert result.target_agent == "tester"
    assert result.message == "it's ready\nplease review"
    assert fake.sent["squad:.1"] == ["it'\"'\"'s ready\\nplease review"]


@pytest.mark.asyncio
async def test_unknown_agent_lists_available(squad_tools) -> None:
    factory, fake = squad_tools
    before = len(fake.commands)

    with pytest.raises(AgentToolError) as excinfo:
        await factory.send_message("ghost", "hi")

    assert str(excinfo.value) == 'Agent "ghost" not found. Available agents: manager, tester'
    assert len(fake.commands) == before


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("agent", "message", "error"),
    [
        ("", "hi", "Agent name must be a non-empty string"),
        (None, "hi", "Agent name must be a non-empty string"),
        ("tester", "", "Message must be a non-empty string"),
        ("tester", 42, "Message must be a non-empty string"),
    ],
)
async def test_send_message_validates_arguments(squad_tools, agent, message, error: str) -> None:
    factory, _ = squad_tools

    with pytest.raises(AgentToolError, match=error):
        await factory.send_message(agent, message)


@pytest.mark.asyncio
async def test_delivery_failure_is_wrapped(make_squad) -> None:
    fake = FakeTmuxAdapter(fail_on=("send-keys",))
    allocator = PaneAllocator("squad", fake)
    await allocator.create_layout(make_squad("manager"))
    factory = AgentToolFactory(allocator)

    with pytest.raises(AgentToolError, match='Failed to deliver message to "manager"'):
        await factory.send_message("manager", "hello")


@pytest.mark.asyncio
async def test_execute_tool(squad_tools) -> None:
    factory, fake = squad_tools

    result = await factory.execute_tool("send_message", {"agentName": "manager", "message": "status?"})

    assert result.tool_name == "send_message"
    assert result.result.target_agent == "manager"
    assert fake.sent["squad:.0"] == ["status?"]


@pytest.mark.asyncio
async def test_execute_tool_errors(squad_tools) -> None:
    factory, _ = squad_tools

    with pytest.raises(AgentToolError, match="Unknown tool: shout"):
        await factory.execute_tool("shout", {})

    with pytest.raises(AgentToolError, match='send_message failed: Agent "nobody" not found'):
        await factory.execute_tool("send_message", {"agent_name": "nobody", "message": "hi"})


@pytest.mark.asyncio
async def test_tool_listing_and_usage(squad_tools) -> None:
    factory, _ = squad_tools

    assert factory.get_available_tools() == ["send_message"]
    assert factory.get_available_agents() == ["manager", "tester"]
    assert "must be one of: manager, tester" in factory.get_tool_usage()


@pytest.mark.asyncio
async def test_agents_are_refreshed_before_each_call(make_squad) -> None:
    fake = FakeTmuxAdapter()
    allocator = PaneAllocator("squad", fake)
    factory = AgentToolFactory(allocator)
    assert factory.get_available_agents() == []

    await allocator.create_layout(make_squad("manager", "tester"))
    result = await factory.send_message("tester", "tests are green")

    assert result.target_agent == "tester"
    assert fake.sent["squad:.1"] == ["tests are green"]


@pytest.mark.asyncio
async def test_missing_researcher_lists_remaining_agents(make_squad) -> None:
    allocator = PaneAllocator("squad", FakeTmuxAdapter())
    await allocator.create_layout(make_squad("manager", "tester"))
    factory = AgentToolFactory(allocator)

    with pytest.raises(AgentToolError) as excinfo:
        await factory.send_message("researcher", "summarize the codebase")

    assert str(excinfo.value) == 'Agent "researcher" not found. Available agents: manager, tester'
