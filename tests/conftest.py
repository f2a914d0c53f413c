import h5py
import numpy as np
import pytest


@pytest.fixture
def h5file(tmp_path):
    """Provide an open HDF5 file backed by a temporary path. The writers
    never open or close files themselves, so tests own the file like a
    real caller would.
    """
    f = h5py.File(str(tmp_path / "writer.h5"), "w")
    try:
        yield f
    finally:
        f.close()


@pytest.fixture
def io_calls(monkeypatch):
    """Record every extend() and write() issued through H5Dataset."""
    from h5append.storage import H5Dataset

    calls = []
    original_extend = H5Dataset.extend
    original_write = H5Dataset.write

    def extend(self, new_extent):
        calls.append(("extend", tuple(new_extent)))
        return original_extend(self, new_extent)

    def write(self, buffer, memory_type, memory_shape, file_space):
        calls.append(("write", tuple(memory_shape)))
        return original_write(self, buffer, memory_type, memory_shape, file_space)

    monkeypatch.setattr(H5Dataset, "extend", extend)
    monkeypatch.setattr(H5Dataset, "write", write)
    return calls


@pytest.fixture
def metrics_registry():
    from prometheus_client import CollectorRegistry

    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry):
    from h5append.metrics import create_writer_metrics

    return create_writer_metrics(metrics_registry)


class FakeDataset:
    """In-memory DatasetHandle used to check the storage protocol."""

    def __init__(self, name, dtype, shape):
        self.name = name
        self.data = np.zeros(shape, dtype=dtype)
        self.calls = []
        self.closed = False

    def extend(self, new_extent):
        self.calls.append(("extend", tuple(new_extent)))
        grown = np.zeros(tuple(new_extent), dtype=self.data.dtype)
        grown[: self.data.shape[0]] = self.data
        self.data = grown

    def get_space(self):
        self.calls.append(("get_space",))
        return {"shape": self.data.shape}

    def select_hyperslab(self, space, offset, count):
        self.calls.append(("select_hyperslab", tuple(offset), tuple(count)))
        space["selection"] = tuple(
            slice(o, o + c) for o, c in zip(offset, count)
        )
        return space

    def write(self, buffer, memory_type, memory_shape, file_space):
        self.calls.append(("write", tuple(memory_shape)))
        assert buffer.dtype == memory_type
        region = self.data[file_space["selection"]]
        if self.data.dtype.names:
            # padded memory layout -> packed file layout, field by field
            for name in self.data.dtype.names:
                region[name] = buffer[name]
        else:
            region[...] = buffer

    def close(self):
        self.calls.append(("close",))
        self.closed = True


class FakeContainer:
    def __init__(self):
        self.created = []
        self.datasets = {}

    def create_dataset(self, name, dtype, shape, maxshape, chunks, compression_level):
        self.created.append((name, dtype, shape, maxshape, chunks, compression_level))
        ds = FakeDataset(name, dtype, shape)
        self.datasets[name] = ds
        return ds


@pytest.fixture
def fake_container():
    return FakeContainer()
