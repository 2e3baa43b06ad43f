# rag.py
# Retrieval over the task's document store. Only added to a run when the
# task supplies a RAG configuration.

from task_engine.namespaces.base import Action, Namespace, require_payload

TOP_K = 1


class Search(Action):
    name = "search"
    description = "To search for information in the knowledge base given a query:"
    example_payload = "what is the biggest city in the world?"

    async def run(self, state, attributes, payload):
        query = require_payload(payload)
        async with state.lock() as s:
            store = s.get_rag()

        # Embedding the query is a network call, keep it outside the lock.
        docs = await store.retrieve(query, TOP_K)

        if not docs:
            return "no documents found for this query"

        return "\n\n".join(
            f"[{doc.name}]\n{doc.content}" for doc, _score in docs
        )


def get_namespace() -> Namespace:
    return Namespace.non_default(
        "Knowledge",
        "You can use the knowledge base to find information relevant to the task.",
        [Search()],
    )
