# stable_browser/engine/agent/scripts.py

"""
JavaScript snippets evaluated inside the page.

Each snippet is a single arrow function suitable for `page.evaluate(script, arg)`.
Bump SCRIPT_VERSION whenever one of them changes behaviour.
"""

SCRIPT_VERSION = "3"

MARKER_ATTRIBUTE = "data-sb-marker"

# arg: {text, tag, regex, partial, ignoreCase}
# Tags every leaf element whose normalised text matches and returns {count, token}.
TEXT_SEARCH_SCRIPT = """
(arg) => {
  const SKIP = new Set(["STYLE", "SCRIPT", "HEAD"]);
  const markerAttr = "data-sb-marker";
  const token = Math.random().toString(36).slice(2, 10) + Date.now().toString(36);
  const marker = "sb-" + token;

  const normalise = (s) => (s || "").replace(/\\s+/g, " ").trim();

  let matcher;
  if (arg.regex) {
    const re = new RegExp(arg.text, "im");
    matcher = (s) => re.test(s);
  } else {
    const wanted = normalise(arg.text);
    const cmp = arg.ignoreCase ? (s) => s.toLowerCase() : (s) => s;
    matcher = arg.partial
      ? (s) => cmp(s).includes(cmp(wanted))
      : (s) => cmp(s) === cmp(wanted);
  }

  const roots = [document];
  const collectShadowRoots = (node) => {
    for (const el of node.querySelectorAll("*")) {
      if (el.shadowRoot) {
        roots.push(el.shadowRoot);
        collectShadowRoots(el.shadowRoot);
      }
    }
  };
  collectShadowRoots(document);

  const tag = arg.tag || "*";
  let elements = [];
  for (const root of roots) {
    elements = elements.concat(Array.from(root.querySelectorAll(tag)));
  }
  elements = elements.filter((el) => {
    if (SKIP.has(el.tagName)) return false;
    const text = normalise(el.innerText || el.textContent);
    if (matcher(text)) return true;
    return typeof el.value === "string" && el.value !== "" && matcher(normalise(el.value));
  });
  const leaves = elements.filter(
    (el) => !elements.some((other) => other !== el && el.contains(other))
  );
  for (const el of leaves) {
    el.setAttribute(markerAttr, marker);
  }
  return { count: leaves.length, token: token };
}
"""

# arg: {durationMs}
HIGHLIGHT_SCRIPT = """
(el, arg) => {
  const previous = el.style.outline;
  el.style.outline = "2px solid red";
  setTimeout(() => { el.style.outline = previous; }, arg.durationMs);
}
"""

# Nudges lazily rendered content into the DOM.
LAZY_SCROLL_SCRIPT = """
() => {
  window.scrollTo(0, document.body ? document.body.scrollHeight : 0);
  return true;
}
"""

# arg: {value}
SET_VALUE_SCRIPT = """
(el, arg) => {
  el.value = arg.value;
  el.dispatchEvent(new Event("input", { bubbles: true }));
  el.dispatchEvent(new Event("change", { bubbles: true }));
}
"""

# arg: {name}
GET_PROPERTY_SCRIPT = """
(el, arg) => {
  const value = el[arg.name];
  return value === undefined || value === null ? null : String(value);
}
"""

MOUSE_OVER_SCRIPT = """
(el) => {
  el.dispatchEvent(new MouseEvent("mouseover", { bubbles: true }));
}
"""
