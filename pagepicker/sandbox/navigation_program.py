"""Navigation program injected into the sandboxed page.

Listens to the same ``enable-selection`` / ``disable-selection`` messages as
the selection program but keeps its own session. While active (selection not
enabled) it tints internal links on hover and turns clicks on them into
``navigate-internal-link`` messages, so the host can load the target through
the capture pipeline. External links keep their default behavior.
"""

import logging

from ..markers import BASE_URL_ATTRIBUTE, INTERNAL_LINK_HOVER_CLASS, NAVIGATION_SCRIPT_ID
from .blocks import ClientProgram, ProgramBlock
from .selection_program import MESSAGING_BLOCK

logger = logging.getLogger(__name__)


DEFAULT_LINK_DEBOUNCE_MS = 100
BODY_WAIT_INTERVAL_MS = 50
BODY_WAIT_MAX_ATTEMPTS = 100


NAVIGATION_SESSION_BLOCK = ProgramBlock("navigation-session", r"""
const navigation = {
  active: true,
  started: false,
  decorated: new WeakSet(),
  decoratedCount: 0,
  observer: null,
  debounceTimer: null,
  bodyWaitAttempts: 0
};
""")


CLASSIFY_BLOCK = ProgramBlock("classify", r"""
function resolveBaseUrl() {
  if (BASE_URL) {
    return BASE_URL;
  }
  const holders = [document.body, document.documentElement];
  for (let i = 0; i < holders.length; i += 1) {
    const value = holders[i] && holders[i].getAttribute(BASE_URL_ATTRIBUTE);
    if (value) {
      return value;
    }
  }
  return '';
}

function classify(rawHref) {
  if (!rawHref || rawHref.charAt(0) === '#') {
    return null;
  }
  let base;
  let target;
  try {
    base = new URL(resolveBaseUrl());
    target = new URL(rawHref, base);
  } catch (err) {
    return null;
  }
  if (target.protocol !== 'http:' && target.protocol !== 'https:') {
    return null;
  }
  return {
    internal: target.hostname === base.hostname && target.protocol === base.protocol,
    url: target.href
  };
}
""")


DECORATE_BLOCK = ProgramBlock("decorate", r"""
function decorate(link) {
  if (navigation.decorated.has(link)) {
    return;
  }
  const info = classify(link.getAttribute('href'));
  if (!info || !info.internal) {
    return;
  }
  navigation.decorated.add(link);
  navigation.decoratedCount += 1;
  link.addEventListener('mouseenter', guarded('mouseenter', function () {
    if (navigation.active) {
      link.classList.add(HOVER_CLASS);
    }
  }));
  link.addEventListener('mouseleave', guarded('mouseleave', function () {
    link.classList.remove(HOVER_CLASS);
  }));
}

function processLinks() {
  Array.prototype.forEach.call(document.querySelectorAll('a[href]'), decorate);
}

function clearDecorations() {
  Array.prototype.forEach.call(document.querySelectorAll('.' + HOVER_CLASS), function (link) {
    link.classList.remove(HOVER_CLASS);
  });
}

function scheduleRescan() {
  if (navigation.debounceTimer !== null) {
    window.clearTimeout(navigation.debounceTimer);
  }
  navigation.debounceTimer = window.setTimeout(guarded('rescan', function () {
    navigation.debounceTimer = null;
    processLinks();
  }), LINK_DEBOUNCE_MS);
}
""")


NAVIGATION_HANDLERS_BLOCK = ProgramBlock("navigation-handlers", r"""
window.addEventListener('message', guarded('message', function (event) {
  if (event.source !== window.parent) {
    return;
  }
  const data = event.data;
  if (!data || typeof data !== 'object' || typeof data.type !== 'string') {
    return;
  }
  if (data.type === 'enable-selection') {
    navigation.active = false;
    clearDecorations();
  } else if (data.type === 'disable-selection') {
    navigation.active = true;
  }
}));

document.addEventListener('click', guarded('click', function (event) {
  if (!navigation.active) {
    return;
  }
  const target = event.target;
  if (!target || target.nodeType !== 1 || typeof target.closest !== 'function') {
    return;
  }
  const link = target.closest('a[href]');
  if (!link) {
    return;
  }
  const info = classify(link.getAttribute('href'));
  if (!info || !info.internal) {
    return;
  }
  event.preventDefault();
  post({ type: 'navigate-internal-link', url: info.url, scriptId: SCRIPT_ID });
}), true);
""")


NAVIGATION_INIT_BLOCK = ProgramBlock("navigation-init", r"""
const start = guarded('start', function () {
  if (navigation.started) {
    return;
  }
  if (!document.body) {
    if (navigation.bodyWaitAttempts >= BODY_WAIT_MAX_ATTEMPTS) {
      debug('document body not available, links left undecorated');
      return;
    }
    navigation.bodyWaitAttempts += 1;
    window.setTimeout(start, BODY_WAIT_INTERVAL_MS);
    return;
  }
  navigation.started = true;
  processLinks();
  if (typeof MutationObserver === 'function') {
    navigation.observer = new MutationObserver(scheduleRescan);
    navigation.observer.observe(document.body, { childList: true, subtree: true });
  }
});

if (document.readyState === 'loading') {
  document.addEventListener('DOMContentLoaded', start);
} else {
  start();
}
""")


NAVIGATION_BLOCKS = (
    MESSAGING_BLOCK,
    NAVIGATION_SESSION_BLOCK,
    CLASSIFY_BLOCK,
    DECORATE_BLOCK,
    NAVIGATION_HANDLERS_BLOCK,
    NAVIGATION_INIT_BLOCK,
)


def build_navigation_program(
    base_url: str,
    link_debounce_ms: int = DEFAULT_LINK_DEBOUNCE_MS,
    script_id: str = NAVIGATION_SCRIPT_ID,
) -> ClientProgram:
    """Assemble the navigation program for a page loaded from ``base_url``.

    An empty ``base_url`` makes the program fall back to the
    ``data-base-url`` attribute stamped on ``<body>`` or ``<html>``.
    """
    program = ClientProgram(script_id=script_id)
    program.add_constant("SCRIPT_ID", script_id)
    program.add_constant("BASE_URL", base_url or "")
    program.add_constant("BASE_URL_ATTRIBUTE", BASE_URL_ATTRIBUTE)
    program.add_constant("HOVER_CLASS", INTERNAL_LINK_HOVER_CLASS)
    program.add_constant("LINK_DEBOUNCE_MS", link_debounce_ms)
    program.add_constant("BODY_WAIT_INTERVAL_MS", BODY_WAIT_INTERVAL_MS)
    program.add_constant("BODY_WAIT_MAX_ATTEMPTS", BODY_WAIT_MAX_ATTEMPTS)

    for block in NAVIGATION_BLOCKS:
        program.add_block(block)

    logger.debug(f"Built navigation program {script_id} for {base_url or '<attribute>'}")
    return program
