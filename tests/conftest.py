"""Pytest configuration for ggml-build tests."""

import logging

import pytest

WRAPPER_HEADER = """\
#pragma once
#include "ggml.h"
"""

GGML_HEADER = """\
#pragma once
#include <stddef.h>
#include <stdint.h>
#include <stdbool.h>

#define GGML_MAX_DIMS 4
#define GGML_MAX_NAME 64
#define GGML_MAX_OP_PARAMS 64

struct ggml_context;

enum ggml_type {
    GGML_TYPE_F32 = 0,
    GGML_TYPE_F16 = 1,
};

struct ggml_init_params {
    size_t mem_size;
    void * mem_buffer;
    bool   no_alloc;
};

struct ggml_tensor {
    enum ggml_type type;
    int64_t ne[GGML_MAX_DIMS];
    size_t  nb[GGML_MAX_DIMS];
    int32_t op_params[GGML_MAX_OP_PARAMS / sizeof(int32_t)];
    struct ggml_tensor * src;
    void * data;
    char name[GGML_MAX_NAME];
};

struct ggml_context * ggml_init(struct ggml_init_params params);
void ggml_free(struct ggml_context * ctx);
int64_t ggml_nelements(const struct ggml_tensor * tensor);
int helper_not_exported(int x);
"""


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """CLI runs reconfigure the package logger; undo that after each test."""
    pkg_logger = logging.getLogger("ggml_build")
    saved = (list(pkg_logger.handlers), pkg_logger.propagate, pkg_logger.level)
    yield
    pkg_logger.handlers[:] = saved[0]
    pkg_logger.propagate = saved[1]
    pkg_logger.setLevel(saved[2])


@pytest.fixture
def ggml_header():
    return GGML_HEADER


@pytest.fixture
def ggml_tree(tmp_path):
    """Minimal vendored ggml checkout: CMakeLists, public header, wrapper."""
    root = tmp_path / "vendor"
    source = root / "ggml"
    (source / "include").mkdir(parents=True)
    (source / "CMakeLists.txt").write_text("project(ggml C CXX)\n")
    (source / "include" / "ggml.h").write_text(GGML_HEADER)
    (root / "wrapper.h").write_text(WRAPPER_HEADER)
    return source
