from talkengine.core.config import RuntimeConfig
from talkframework.dialog.errors import DialogueParseError
from talkframework.dialog.script import load_script_database

GOOD = "title: Start\nspeaker: A\n---\nHi\n[[../bye.start]]\n===\n"
BYE = "title: Start\nspeaker: B\n---\nBye\n===\n"
BROKEN = "title: Start\nspeaker: A\n---\n<<if $a>>\n===\n"


def test_load_script_database(tmp_path):
    (tmp_path / "quests").mkdir()
    (tmp_path / "quests" / "intro.dlb").write_text(GOOD, encoding="utf-8")
    (tmp_path / "bye.dlb").write_text(BYE, encoding="utf-8")
    (tmp_path / "broken.dlb").write_text(BROKEN, encoding="utf-8")

    db = load_script_database(RuntimeConfig(scripts_path=tmp_path))

    assert db.names == ["bye", "quests/intro"]
    intro = db.get("quests/intro")
    assert intro.name == "quests/intro"
    assert intro.dialogues_referenced == {"bye"}
    assert isinstance(db.errors["broken"], DialogueParseError)


def test_custom_extension(tmp_path):
    (tmp_path / "bye.talk").write_text(BYE, encoding="utf-8")
    (tmp_path / "other.dlb").write_text(BYE, encoding="utf-8")

    db = load_script_database(RuntimeConfig(scripts_path=tmp_path, script_extension=".talk"))

    assert db.names == ["bye"]
