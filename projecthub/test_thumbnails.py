from projecthub.thumbnails import DEFAULT_THUMBNAILS, display_thumbnail, pick_default_thumbnail


def test_pick_is_stable_and_from_the_pool():
    for project_id in range(1, 50):
        pick = pick_default_thumbnail(project_id)
        assert pick in DEFAULT_THUMBNAILS
        assert pick_default_thumbnail(project_id) == pick


def test_pool_is_actually_used():
    assert len({pick_default_thumbnail(i) for i in range(1, 100)}) > 1


def test_explicit_thumbnail_wins():
    assert display_thumbnail(3, "https://img.example/x.png") == "https://img.example/x.png"
    assert display_thumbnail(3, None) == pick_default_thumbnail(3)
