import asyncio
from types import SimpleNamespace

import discord

from conftest import FakeFacade, make_orchestrator

from hoyaku.cogs import reaction_translate
from hoyaku.cogs.reaction_translate import ReactionTranslate, _fit_reply
from hoyaku.storage.guild_settings import GuildSettingsStore


class FakeChannel:
    def __init__(self, content="Hello"):
        self.id = 10
        self.content = content
        self.replies = []

    async def fetch_message(self, mid):
        return SimpleNamespace(id=mid, content=self.content, author=SimpleNamespace(id=3, bot=False))

    def get_partial_message(self, mid):
        channel = self

        class _Partial:
            id = mid

            async def reply(self, text, mention_author=True):
                channel.replies.append((mid, text, mention_author))
                return SimpleNamespace(id=9000 + len(channel.replies))

        return _Partial()


def _store(tmp_path):
    store = GuildSettingsStore(str(tmp_path / "guilds.json"))
    store.set_role_languages(1, 55, ["fr"])
    return store


def _bot(channel, member=None):
    guild = SimpleNamespace(id=1, get_member=lambda uid: member)
    return SimpleNamespace(
        user=SimpleNamespace(id=999),
        get_channel=lambda cid: channel,
        get_guild=lambda gid: guild,
    )


def _payload(user_id=7, emoji="🌐", member=None):
    return SimpleNamespace(
        guild_id=1,
        channel_id=10,
        message_id=100,
        user_id=user_id,
        emoji=emoji,
        member=member,
    )


def _member(bot=False):
    return SimpleNamespace(id=7, bot=bot, roles=[SimpleNamespace(id=55)])


def test_reaction_runs_the_fanout(tmp_path):
    store = _store(tmp_path)
    facade = FakeFacade(source="en")
    orch, delivery = make_orchestrator(facade, store)
    cog = ReactionTranslate(_bot(FakeChannel()), store=store, orchestrator=orch)

    async def main():
        await cog.on_raw_reaction_add(_payload(member=_member()))
        await orch.drain()
        orch.shutdown()

    asyncio.run(main())
    assert facade.detect_calls == ["Hello"]
    assert [(mid, lang) for _, mid, lang, _ in delivery.sent] == [(100, "fr")]


def test_member_is_looked_up_when_payload_lacks_it(tmp_path):
    store = _store(tmp_path)
    orch, delivery = make_orchestrator(FakeFacade(), store)
    cog = ReactionTranslate(_bot(FakeChannel(), member=_member()), store=store, orchestrator=orch)

    async def main():
        await cog.on_raw_reaction_add(_payload(member=None))
        await orch.drain()
        orch.shutdown()

    asyncio.run(main())
    assert len(delivery.sent) == 1


def test_ignored_reactions(tmp_path):
    store = _store(tmp_path)
    facade = FakeFacade()
    orch, delivery = make_orchestrator(facade, store)
    cog = ReactionTranslate(_bot(FakeChannel()), store=store, orchestrator=orch)

    async def main():
        await cog.on_raw_reaction_add(_payload(user_id=999, member=_member()))
        await cog.on_raw_reaction_add(_payload(member=_member(bot=True)))
        await cog.on_raw_reaction_add(_payload(emoji="👍", member=_member()))
        await orch.drain()

    asyncio.run(main())
    assert facade.detect_calls == []
    assert delivery.sent == []


def test_send_reply_replies_to_the_original(tmp_path):
    channel = FakeChannel()
    store = _store(tmp_path)
    orch, _ = make_orchestrator(FakeFacade(), store)
    cog = ReactionTranslate(_bot(channel), store=store, orchestrator=orch)
    event = SimpleNamespace(channel_id=10, message_id=100)

    rid = asyncio.run(cog._send_reply(event, "fr", "Bonjour"))
    assert rid == 9001
    assert channel.replies == [(100, "Bonjour", False)]


def test_fit_reply():
    assert _fit_reply("  hi ") == "hi"
    assert _fit_reply("") == "(empty)"
    long = _fit_reply("x" * 2500)
    assert len(long) == 2000
    assert long.endswith("…")


def test_auto_react_on_new_messages(tmp_path):
    store = _store(tmp_path)
    store.set_trigger_emoji(1, "<:globe:1234>")
    orch, _ = make_orchestrator(FakeFacade(), store)
    cog = ReactionTranslate(_bot(FakeChannel()), store=store, orchestrator=orch)
    cog.auto_react = True
    cog.auto_react_delay = 0
    added = []

    async def add_reaction(emoji):
        added.append(emoji)

    def message(content="Hello", author_bot=False):
        return SimpleNamespace(
            id=100,
            guild=SimpleNamespace(id=1, name="guild"),
            channel=SimpleNamespace(id=10),
            author=SimpleNamespace(bot=author_bot),
            content=content,
            add_reaction=add_reaction,
        )

    async def main():
        await cog.on_message(message())
        await cog.on_message(message(author_bot=True))
        await cog.on_message(message(content="  "))

    asyncio.run(main())
    assert len(added) == 1
    assert isinstance(added[0], discord.PartialEmoji)
    assert added[0].id == 1234


def test_unload_cancels_timers(tmp_path):
    store = _store(tmp_path)
    orch, _ = make_orchestrator(FakeFacade(), store)
    cog = ReactionTranslate(_bot(FakeChannel()), store=store, orchestrator=orch)

    async def main():
        await cog.on_raw_reaction_add(_payload(member=_member()))
        await orch.drain()
        before = orch.cache.pending_timers()
        await cog.cog_unload()
        return before, orch.cache.pending_timers()

    assert asyncio.run(main()) == (1, 0)


def test_setup_registers_the_cog(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    added = []

    async def add_cog(cog):
        added.append(cog)

    bot = SimpleNamespace(add_cog=add_cog)
    asyncio.run(reaction_translate.setup(bot))
    assert isinstance(added[0], ReactionTranslate)
    assert added[0].orchestrator.stagger == 0.1
