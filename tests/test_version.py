from runtime import version


def test_version_string_mentions_build():
    text = version.as_string()

    assert version.VERSION in text
    assert f"Build {version.BUILD}" in text


def test_version_dict_keys():
    assert set(version.as_dict()) == {"project", "version", "build", "license"}
