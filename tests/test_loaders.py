"""
Tests for BRFSS file readers.
"""
import pandas as pd
import pytest

from brfss.survey.loaders import GUAM, read_brfss


@pytest.fixture
def csv_file(tmp_path):
    df = pd.DataFrame({'_STATE': [66, 66, 15, 66],
                       '_STSTR': [66011, 66011, 15011, 66012],
                       '_PSU': [1, 2, 3, 4],
                       '_LLCPWT': [10.5, 20.0, 30.0, 40.0],
                       'SEXVAR': [1, 2, 2, 1]})
    path = tmp_path / 'extract.csv'
    df.to_csv(path, index=False)
    return str(path)


def test_read_csv(csv_file):
    df = read_brfss(csv_file)
    assert df.shape == (4, 5)
    assert df['_LLCPWT'].tolist() == [10.5, 20.0, 30.0, 40.0]


def test_state_filter_resets_index(csv_file):
    df = read_brfss(csv_file, state=GUAM)
    assert df['_PSU'].tolist() == [1, 2, 4]
    assert list(df.index) == [0, 1, 2]


def test_column_selection(csv_file):
    df = read_brfss(csv_file, columns=['_PSU', 'SEXVAR'], state=GUAM)
    assert list(df.columns) == ['_PSU', 'SEXVAR']
    assert len(df) == 3
    with pytest.raises(ValueError, match="DIABETE4"):
        read_brfss(csv_file, columns=['_PSU', 'DIABETE4'])


def test_missing_state_column(tmp_path):
    path = tmp_path / 'nostate.csv'
    pd.DataFrame({'_PSU': [1]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="_STATE"):
        read_brfss(str(path), state=GUAM)


def test_unsupported_format(tmp_path):
    path = tmp_path / 'extract.parquet'
    path.write_text('')
    with pytest.raises(ValueError, match="Unsupported"):
        read_brfss(str(path))
