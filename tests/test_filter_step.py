import asyncio

import streamchain as sc


async def test_filter_operation():
    """Test filter operation"""
    result = await sc.StreamProcessor().filter(lambda x: x % 2 == 0).collect(range(10))
    assert result == [0, 2, 4, 6, 8]


async def test_async_predicate():
    async def is_valid_email(email):
        await asyncio.sleep(0.001)
        return "@" in email and "." in email

    emails = ["test@example.com", "invalid", "user@domain.org"]
    result = await sc.StreamProcessor().filter(is_valid_email).collect(emails)
    assert result == ["test@example.com", "user@domain.org"]


async def test_truthy_values_keep_chunks():
    result = await sc.StreamProcessor().filter(lambda x: x).collect([0, 1, "", "a", None, [2]])
    assert result == [1, "a", [2]]


async def test_predicate_receives_context():
    contexts = []

    def keep(item, context):
        contexts.append(context)
        return True

    await sc.StreamProcessor().map(str).filter(keep).collect([1, 2])

    assert [(c.name, c.position) for c in contexts] == [("filter", 1), ("filter", 1)]


async def test_predicate_with_defaulted_context():
    def keep(item, context=None):
        return context is not None and context.name == "filter"

    result = await sc.StreamProcessor().filter(keep).collect([1, 2])
    assert result == [1, 2]
