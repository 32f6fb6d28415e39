from immersive_planner.services.plan_sessions import session_store_factory
from immersive_planner.services.session_store import InMemorySessionStore, JsonFileSessionStore, SessionKey


def test_memory_store_round_trip():
    store = InMemorySessionStore()

    store.set(SessionKey.lesson_plan_id, "p1")
    store.set(SessionKey.current_step, 2)

    assert store.get(SessionKey.lesson_plan_id) == "p1"
    assert store.get("currentStep") == "2"
    store.delete(SessionKey.lesson_plan_id)
    assert store.get(SessionKey.lesson_plan_id) is None


def test_json_store_persists_between_instances(tmp_path):
    JsonFileSessionStore.for_client(tmp_path, "browser-1").set(SessionKey.lesson_plan_id, "p1")

    reopened = JsonFileSessionStore.for_client(tmp_path, "browser-1")

    assert reopened.get(SessionKey.lesson_plan_id) == "p1"
    assert reopened.get(SessionKey.current_step) is None


def test_json_store_sanitizes_client_id(tmp_path):
    store = JsonFileSessionStore.for_client(tmp_path, "../evil/id")

    assert store.path.parent == tmp_path
    assert store.path.name == ".._evil_id.json"


def test_corrupt_json_reads_as_empty(tmp_path):
    path = tmp_path / "c.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileSessionStore(path)

    assert store.get(SessionKey.lesson_plan_id) is None
    store.set(SessionKey.current_step, "3")
    assert store.get(SessionKey.current_step) == "3"


def test_factory_keeps_one_memory_store_per_client():
    factory = session_store_factory("")

    factory("a").set(SessionKey.lesson_plan_id, "p1")

    assert factory("a").get(SessionKey.lesson_plan_id) == "p1"
    assert factory("b").get(SessionKey.lesson_plan_id) is None


def test_factory_uses_files_when_directory_set(tmp_path):
    factory = session_store_factory(str(tmp_path))

    factory("a").set(SessionKey.current_step, "2")

    assert (tmp_path / "a.json").exists()
