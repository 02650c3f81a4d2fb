"""Selection program injected into the sandboxed page.

The program keeps one explicit session per document (``disabled`` or
``enabled``), changed only by ``enable-selection`` / ``disable-selection``
messages from the host. While enabled it highlights the hovered element and
reports the clicked element as ``element-selected``. It announces itself with
``parser-script-ready`` on a bounded back-off until the host answers
``host-ack``, and sends ``parser-script-gave-up`` when it runs out of attempts.
"""

import logging

from ..markers import (
    SELECTION_SCRIPT_ID,
    HOVER_BOX_ID,
    INFO_OVERLAY_ID,
    INTERNAL_CLASS_MARKER,
)
from ..models.selection import MAX_ELEMENT_TEXT_LENGTH
from .blocks import ClientProgram, ProgramBlock

logger = logging.getLogger(__name__)


DEFAULT_READY_INITIAL_DELAY_MS = 500
DEFAULT_READY_MAX_DELAY_MS = 5000
DEFAULT_READY_MAX_ATTEMPTS = 8

INFO_TEXT_LENGTH = 40
INFO_MAX_CLASSES = 3


MESSAGING_BLOCK = ProgramBlock("messaging", r"""
function post(message) {
  try {
    if (window.parent && window.parent !== window) {
      window.parent.postMessage(message, '*');
    }
  } catch (err) {
    // channel unavailable
  }
}

function debug(text) {
  post({ type: 'parser-debug', message: String(text), scriptId: SCRIPT_ID });
}

function guarded(label, fn) {
  return function () {
    try {
      return fn.apply(this, arguments);
    } catch (err) {
      debug(label + ': ' + (err && err.message ? err.message : err));
      return undefined;
    }
  };
}
""")


SESSION_BLOCK = ProgramBlock("session", r"""
const session = {
  state: 'disabled',
  initialized: false,
  hovered: null,
  selected: null
};

function isEnabled() {
  return session.state === 'enabled';
}
""")


OVERLAY_BLOCK = ProgramBlock("overlay", r"""
function ensureOverlay() {
  if (!document.body) {
    return false;
  }
  if (!document.getElementById(HOVER_BOX_ID)) {
    const box = document.createElement('div');
    box.id = HOVER_BOX_ID;
    document.body.appendChild(box);
  }
  if (!document.getElementById(INFO_OVERLAY_ID)) {
    const info = document.createElement('div');
    info.id = INFO_OVERLAY_ID;
    document.body.appendChild(info);
  }
  return true;
}

function isOverlayNode(node) {
  while (node && node.nodeType === 1) {
    if (node.id === HOVER_BOX_ID || node.id === INFO_OVERLAY_ID) {
      return true;
    }
    node = node.parentElement;
  }
  return false;
}

function pageClasses(el) {
  return Array.prototype.filter.call(el.classList || [], function (name) {
    return name.indexOf(INTERNAL_CLASS_MARKER) === -1;
  });
}

function hideOverlay() {
  [HOVER_BOX_ID, INFO_OVERLAY_ID].forEach(function (id) {
    const node = document.getElementById(id);
    if (node) {
      node.style.display = 'none';
    }
  });
}

function describeBriefly(el) {
  let label = el.tagName.toLowerCase();
  if (el.id) {
    label += '#' + el.id;
  }
  pageClasses(el).slice(0, INFO_MAX_CLASSES).forEach(function (name) {
    label += '.' + name;
  });
  const text = (el.textContent || '').trim().replace(/\s+/g, ' ');
  if (text) {
    label += ' ' + text.slice(0, INFO_TEXT_LENGTH);
  }
  return label;
}

function showHighlight(el) {
  if (!ensureOverlay()) {
    return;
  }
  const box = document.getElementById(HOVER_BOX_ID);
  const info = document.getElementById(INFO_OVERLAY_ID);
  const rect = el.getBoundingClientRect();
  const scrollX = window.pageXOffset || document.documentElement.scrollLeft || 0;
  const scrollY = window.pageYOffset || document.documentElement.scrollTop || 0;

  box.style.left = (rect.left + scrollX) + 'px';
  box.style.top = (rect.top + scrollY) + 'px';
  box.style.width = rect.width + 'px';
  box.style.height = rect.height + 'px';
  box.style.display = 'block';

  info.textContent = describeBriefly(el);
  info.style.left = (rect.left + scrollX) + 'px';
  info.style.top = Math.max(0, rect.top + scrollY - 24) + 'px';
  info.style.display = 'block';
}
""")


SELECTOR_BLOCK = ProgramBlock("selector", r"""
function cssEscape(value) {
  if (window.CSS && typeof window.CSS.escape === 'function') {
    return window.CSS.escape(value);
  }
  return String(value).replace(/([^\w-])/g, '\\$1');
}

function countMatches(selector) {
  try {
    return document.querySelectorAll(selector).length;
  } catch (err) {
    return 0;
  }
}

function uniqueIdSelector(el) {
  if (!el.id) {
    return null;
  }
  const selector = '#' + cssEscape(el.id);
  return countMatches(selector) === 1 ? selector : null;
}

function segmentFor(el) {
  let segment = el.tagName.toLowerCase();
  pageClasses(el).forEach(function (name) {
    segment += '.' + cssEscape(name);
  });
  const parent = el.parentElement;
  if (parent) {
    const sameTag = Array.prototype.filter.call(parent.children, function (sibling) {
      return sibling.tagName === el.tagName;
    });
    if (sameTag.length > 1) {
      segment += ':nth-of-type(' + (sameTag.indexOf(el) + 1) + ')';
    }
  }
  return segment;
}

function selectorPath(el) {
  const own = uniqueIdSelector(el);
  if (own) {
    return { selector: own, similar: own };
  }

  const segments = [];
  let node = el;
  while (node && node.nodeType === 1) {
    const tag = node.tagName.toLowerCase();
    if (tag === 'body' || tag === 'html') {
      segments.unshift(tag);
      break;
    }
    if (node !== el) {
      const anchor = uniqueIdSelector(node);
      if (anchor) {
        segments.unshift(anchor);
        break;
      }
    }
    segments.unshift(segmentFor(node));
    if (countMatches(segments.join(' > ')) === 1) {
      break;
    }
    node = node.parentElement;
  }

  const last = segments[segments.length - 1].replace(/:nth-of-type\(\d+\)$/, '');
  const similar = segments.slice(0, -1).concat([last]).join(' > ');
  return { selector: segments.join(' > '), similar: similar };
}

function describeElement(el) {
  const path = selectorPath(el);
  const attributes = {};
  Array.prototype.forEach.call(el.attributes || [], function (attr) {
    attributes[attr.name] = attr.value;
  });
  const text = (el.textContent || '').trim().replace(/\s+/g, ' ');
  return {
    type: 'element-selected',
    selector: path.selector,
    tagName: el.tagName.toLowerCase(),
    text: text.slice(0, MAX_TEXT_LENGTH),
    attributes: attributes,
    similarElements: countMatches(path.similar),
    similarSelector: path.similar
  };
}
""")


READINESS_BLOCK = ProgramBlock("readiness", r"""
const readiness = { attempts: 0, acknowledged: false, gaveUp: false, timer: null };

function announce() {
  if (readiness.acknowledged || readiness.gaveUp) {
    return;
  }
  if (readiness.attempts >= READY_MAX_ATTEMPTS) {
    return;
  }
  readiness.attempts += 1;
  post({ type: 'parser-script-ready', scriptId: SCRIPT_ID, attempt: readiness.attempts });
}

function scheduleProbe(delay) {
  readiness.timer = window.setTimeout(guarded('readiness', function () {
    readiness.timer = null;
    if (readiness.acknowledged) {
      return;
    }
    if (readiness.attempts >= READY_MAX_ATTEMPTS) {
      readiness.gaveUp = true;
      post({ type: 'parser-script-gave-up', scriptId: SCRIPT_ID, attempts: readiness.attempts });
      return;
    }
    announce();
    scheduleProbe(Math.min(delay * 2, READY_MAX_DELAY_MS));
  }), delay);
}

function acknowledge() {
  readiness.acknowledged = true;
  if (readiness.timer !== null) {
    window.clearTimeout(readiness.timer);
    readiness.timer = null;
  }
}
""")


HANDLERS_BLOCK = ProgramBlock("handlers", r"""
function enable() {
  session.state = 'enabled';
  ensureOverlay();
}

function disable() {
  session.state = 'disabled';
  session.hovered = null;
  session.selected = null;
  hideOverlay();
}

window.addEventListener('message', guarded('message', function (event) {
  if (event.source !== window.parent) {
    return;
  }
  const data = event.data;
  if (!data || typeof data !== 'object' || typeof data.type !== 'string') {
    return;
  }
  if (data.type === 'enable-selection') {
    enable();
  } else if (data.type === 'disable-selection') {
    disable();
  } else if (data.type === 'host-ack') {
    acknowledge();
  }
}));

document.addEventListener('mouseover', guarded('mouseover', function (event) {
  if (!isEnabled()) {
    return;
  }
  const target = event.target;
  if (!target || target.nodeType !== 1 || isOverlayNode(target)) {
    return;
  }
  session.hovered = target;
  showHighlight(target);
}), true);

document.addEventListener('mouseout', guarded('mouseout', function (event) {
  if (isEnabled() && !event.relatedTarget) {
    session.hovered = null;
    hideOverlay();
  }
}), true);

document.addEventListener('click', guarded('click', function (event) {
  if (!isEnabled()) {
    return;
  }
  const target = event.target;
  if (!target || target.nodeType !== 1 || isOverlayNode(target)) {
    return;
  }
  event.preventDefault();
  event.stopPropagation();
  event.stopImmediatePropagation();
  const message = describeElement(target);
  session.selected = message;
  post(message);
}), true);
""")


INIT_BLOCK = ProgramBlock("init", r"""
const initialize = guarded('init', function () {
  if (session.initialized) {
    return;
  }
  if (ensureOverlay()) {
    session.initialized = true;
  }
});

initialize();
announce();

if (document.readyState === 'loading') {
  document.addEventListener('DOMContentLoaded', guarded('domready', function () {
    initialize();
    announce();
  }));
}

window.addEventListener('load', guarded('load', function () {
  initialize();
  announce();
}));

scheduleProbe(READY_INITIAL_DELAY_MS);
""")


SELECTION_BLOCKS = (
    MESSAGING_BLOCK,
    SESSION_BLOCK,
    OVERLAY_BLOCK,
    SELECTOR_BLOCK,
    READINESS_BLOCK,
    HANDLERS_BLOCK,
    INIT_BLOCK,
)


def build_selection_program(
    ready_initial_delay_ms: int = DEFAULT_READY_INITIAL_DELAY_MS,
    ready_max_delay_ms: int = DEFAULT_READY_MAX_DELAY_MS,
    ready_max_attempts: int = DEFAULT_READY_MAX_ATTEMPTS,
    script_id: str = SELECTION_SCRIPT_ID,
) -> ClientProgram:
    """Assemble the selection program.

    Args:
        ready_initial_delay_ms: First back-off delay of the readiness probe
        ready_max_delay_ms: Cap on the doubling back-off delay
        ready_max_attempts: Announcements sent before giving up
        script_id: Identifier carried by every message the program sends

    Returns:
        The assembled program; call ``render()`` for its source
    """
    program = ClientProgram(script_id=script_id)
    program.add_constant("SCRIPT_ID", script_id)
    program.add_constant("HOVER_BOX_ID", HOVER_BOX_ID)
    program.add_constant("INFO_OVERLAY_ID", INFO_OVERLAY_ID)
    program.add_constant("INTERNAL_CLASS_MARKER", INTERNAL_CLASS_MARKER)
    program.add_constant("MAX_TEXT_LENGTH", MAX_ELEMENT_TEXT_LENGTH)
    program.add_constant("INFO_TEXT_LENGTH", INFO_TEXT_LENGTH)
    program.add_constant("INFO_MAX_CLASSES", INFO_MAX_CLASSES)
    program.add_constant("READY_INITIAL_DELAY_MS", ready_initial_delay_ms)
    program.add_constant("READY_MAX_DELAY_MS", ready_max_delay_ms)
    program.add_constant("READY_MAX_ATTEMPTS", ready_max_attempts)

    for block in SELECTION_BLOCKS:
        program.add_block(block)

    logger.debug(
        f"Built selection program {script_id} "
        f"(readiness {ready_initial_delay_ms}ms..{ready_max_delay_ms}ms x{ready_max_attempts})"
    )
    return program
