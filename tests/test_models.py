from waypoint_archive.models import MasterTopicList, SubForum, SubForumNameAndURL, Topic


def test_topic_round_trip():
    topic = Topic(
        id="t1",
        sub_forum_id="sf1",
        title="Title",
        url="http://example.com/t1",
        author_username="alice",
        replies=3,
        views=40,
        last_post_username="bob",
        last_post_timestamp_raw="2023-01-01T00:00:00Z",
        is_sticky=True,
        is_locked=False,
    )
    assert Topic.from_dict(topic.to_dict()) == topic


def test_topic_from_camel_case_keys():
    topic = Topic.from_dict({"ID": "t9", "SubForumID": "sf2", "LastPostTimestampRaw": "raw", "IsLocked": True})
    assert topic.id == "t9"
    assert topic.sub_forum_id == "sf2"
    assert topic.last_post_timestamp_raw == "raw"
    assert topic.is_locked is True
    assert topic.replies == 0


def test_topic_from_dict_ignores_unknown_keys():
    topic = Topic.from_dict({"id": "t1", "unknown": "value"})
    assert topic == Topic(id="t1")


def test_sub_forum_round_trip():
    sub_forum = SubForum(
        id="sf1",
        name="Forum One",
        url="http://example.com/sf1",
        topic_count=2,
        topics=[Topic(id="t1", sub_forum_id="sf1"), Topic(id="t2", sub_forum_id="sf1")],
    )
    restored = SubForum.from_dict(sub_forum.to_dict())
    assert restored == sub_forum
    assert all(isinstance(t, Topic) for t in restored.topics)


def test_sub_forum_from_dict_missing_topics():
    sub_forum = SubForum.from_dict({"ID": "sf3", "Name": "Three"})
    assert sub_forum.topics == []
    assert sub_forum.name == "Three"


def test_master_topic_list_len_and_iter():
    topics = [Topic(id="a"), Topic(id="b")]
    master = MasterTopicList(topics=topics)
    assert len(master) == 2
    assert [t.id for t in master] == ["a", "b"]


def test_sub_forum_name_and_url_equality():
    assert SubForumNameAndURL("One", "u") == SubForumNameAndURL(name="One", url="u")
    assert SubForumNameAndURL("One", "u") != SubForumNameAndURL("One", "v")